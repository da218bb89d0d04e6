"""
Database tables: doctors, patients and their recorded consultations
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, Column, Text
from sqlmodel import Field, Relationship, SQLModel


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecordingStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Doctor(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    email: str = Field(index=True, unique=True)
    password_hash: str
    specialization: Optional[str] = None
    qualification: Optional[str] = None
    college: Optional[str] = None
    experience_years: Optional[int] = None
    created_at: datetime = Field(default_factory=utc_now)

    patients: List["Patient"] = Relationship(
        back_populates="doctor",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class Patient(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    age: Optional[int] = None
    gender: Optional[str] = None
    notes: Optional[str] = Field(default=None, sa_column=Column(Text))
    doctor_id: str = Field(foreign_key="doctor.id", index=True)
    created_at: datetime = Field(default_factory=utc_now)

    doctor: Optional[Doctor] = Relationship(back_populates="patients")
    recordings: List["Recording"] = Relationship(
        back_populates="patient",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class Recording(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    patient_id: str = Field(foreign_key="patient.id", index=True)
    doctor_id: str = Field(foreign_key="doctor.id", index=True)
    audio_url: str
    transcript: Optional[str] = Field(default=None, sa_column=Column(Text))
    # chiefComplaint, history, diagnosis, medication, followUp
    summary: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    status: RecordingStatus = Field(default=RecordingStatus.PENDING)
    created_at: datetime = Field(default_factory=utc_now)

    patient: Optional[Patient] = Relationship(back_populates="recordings")
