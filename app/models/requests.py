"""
Pydantic Models for API Requests
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts camelCase (mobile client) and snake_case keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DoctorSignupRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    specialization: Optional[str] = None
    qualification: Optional[str] = None
    college: Optional[str] = None
    experience_years: Optional[int] = Field(default=None, ge=0)


class DoctorLoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class PatientCreateRequest(CamelModel):
    name: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=0)
    gender: Optional[str] = None
    notes: Optional[str] = None


class PatientUpdateRequest(CamelModel):
    """Partial update; fields left out keep their stored value"""
    name: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=0)
    gender: Optional[str] = None
    notes: Optional[str] = None


class TranslateRequest(CamelModel):
    language: str = Field(description="Target language name, e.g. 'English', 'Hindi', 'Kannada'")
    force: bool = Field(default=False, description="Translate even when the target is English")


class PatientSummaryPayload(CamelModel):
    concise: str
    detailed: str


class SummaryTranslateRequest(CamelModel):
    language: str
    force: bool = Field(default=False)
    summary: Optional[PatientSummaryPayload] = Field(
        default=None,
        description="Summary to translate; regenerated from the recordings when omitted"
    )
