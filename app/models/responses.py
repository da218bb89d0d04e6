"""
Pydantic Models for API Responses
"""

import json
from typing import Optional, Dict, Any, List
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from app.models.db_models import RecordingStatus


class CamelResponse(BaseModel):
    """Serialized with camelCase keys; built from ORM rows"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ConsultationSummary(CamelResponse):
    """Structured summary of a single consultation"""
    chief_complaint: str = Field(default="", description="Main reason for visit")
    history: str = Field(default="", description="Relevant medical history")
    diagnosis: str = Field(default="", description="Clinical assessment")
    medication: str = Field(default="", description="Prescribed medications with dosage")
    follow_up: str = Field(default="", description="Follow-up instructions")

    @field_validator("*", mode="before")
    @classmethod
    def _flatten(cls, value: Any) -> str:
        # Models sometimes answer with lists or nested objects
        if value is None:
            return ""
        if isinstance(value, list):
            return "; ".join(v if isinstance(v, str) else json.dumps(v) for v in value)
        if isinstance(value, dict):
            return json.dumps(value)
        return str(value)


class PatientHistorySummary(BaseModel):
    """Aggregate summary over all consultations of a patient"""
    concise: str = Field(description="Short paragraph on the overall trajectory")
    detailed: str = Field(description="Markdown timeline of symptoms, treatments and outcomes")


class DoctorPublic(CamelResponse):
    id: str
    name: str
    email: str
    specialization: Optional[str] = None


class AuthResponse(BaseModel):
    token: str
    doctor: DoctorPublic


class RecordingRead(CamelResponse):
    id: str
    patient_id: str
    doctor_id: str
    audio_url: str
    transcript: Optional[str] = None
    summary: Optional[Dict[str, Any]] = None
    status: RecordingStatus
    created_at: datetime


class PatientRead(CamelResponse):
    id: str
    name: str
    age: Optional[int] = None
    gender: Optional[str] = None
    notes: Optional[str] = None
    doctor_id: str
    created_at: datetime


class PatientDetail(PatientRead):
    recordings: List[RecordingRead] = Field(default=[])


class TranslationResponse(BaseModel):
    translation: str


class MessageResponse(BaseModel):
    message: str


class HealthCheckResponse(CamelResponse):
    """Health Check Response"""
    status: str = Field(description="Service status (healthy/unhealthy)")
    timestamp: datetime = Field(description="Time of the check")
    version: str = Field(description="Service version")
    uptime_seconds: int = Field(description="Uptime in seconds")


class ErrorResponse(CamelResponse):
    """Error body returned by every failing route"""
    error: str = Field(description="User-facing error message")
    request_id: Optional[str] = Field(default=None, description="Request ID for debugging")


class RateLimitResponse(CamelResponse):
    """Rate Limit Exceeded Response"""
    error: str = Field(default="Too many requests. Please try again later.")
    retry_after: int = Field(description="Seconds until the next attempt")
    limit: int = Field(description="Request limit")
    window: int = Field(description="Window in seconds")
