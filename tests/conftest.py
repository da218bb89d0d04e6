"""
Pytest configuration and fixtures.

Environment is set before the app is imported: a throwaway SQLite database,
a temporary uploads directory, and no Google/AWS credentials so every
external call goes to the fake LLM client below.
"""

import json
import os
import tempfile
from types import SimpleNamespace

_tmp_dir = tempfile.mkdtemp(prefix="mediassist-tests-")
os.environ["API_SECRET_KEY"] = "test-secret-key"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp_dir, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_tmp_dir, "uploads")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["GOOGLE_CLOUD_API_KEY"] = ""
os.environ["AWS_ACCESS_KEY_ID"] = ""
os.environ["AWS_SECRET_ACCESS_KEY"] = ""
os.environ["S3_BUCKET_NAME"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel

from app.db import engine, get_session
from app.main import app
from app.models import db_models  # noqa: F401
from app.models.db_models import Doctor, Patient, Recording
from app.services.llm_service import llm_service

MOCK_TRANSCRIPT = (
    "Doctor: What brings you in today?\n"
    "Patient: I have had a throbbing headache for two days and feel nauseous.\n"
    "Doctor: Any history of migraines?\nPatient: Yes, since my twenties."
)

CONSULTATION_SUMMARY = {
    "chiefComplaint": "Headache for two days",
    "history": "Migraines since twenties",
    "diagnosis": "Migraine without aura",
    "medication": "Sumatriptan 50 mg as needed",
    "followUp": "Review in two weeks",
}

PATIENT_SUMMARY = {
    "concise": "Recurring migraines, improving with triptans.",
    "detailed": "## Timeline\n- Visit 1: migraine, started sumatriptan",
}


class FakeCompletions:
    """Stands in for client.chat.completions; answers by prompt type."""

    def __init__(self):
        self.calls = []
        self.replies = {}
        self.errors = {}

    @staticmethod
    def kind_of(prompt: str) -> str:
        if "Generate a detailed, realistic medical consultation transcript" in prompt:
            return "transcript"
        if "structured summary in JSON format" in prompt:
            return "summary"
        if "history of patient consultations" in prompt:
            return "history"
        return "translation"

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        prompt = kwargs["messages"][-1]["content"]
        kind = self.kind_of(prompt)

        if kind in self.errors:
            raise self.errors[kind]

        if kind in self.replies:
            content = self.replies[kind]
        elif kind == "transcript":
            content = MOCK_TRANSCRIPT
        elif kind == "summary":
            content = json.dumps(CONSULTATION_SUMMARY)
        elif kind == "history":
            content = json.dumps(PATIENT_SUMMARY)
        else:
            content = f"[translated] {prompt.splitlines()[0]}"

        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    def calls_of(self, kind: str):
        return [c for c in self.calls if self.kind_of(c["messages"][-1]["content"]) == kind]


@pytest.fixture(autouse=True)
def reset_database():
    """Fresh tables for every test."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def canned():
    """Default answers of the fake LLM."""
    return SimpleNamespace(transcript=MOCK_TRANSCRIPT, summary=CONSULTATION_SUMMARY, patient_summary=PATIENT_SUMMARY)


@pytest.fixture(autouse=True)
def fake_llm(monkeypatch):
    """Replace the OpenAI-compatible client shared by every service."""
    completions = FakeCompletions()
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    monkeypatch.setattr(llm_service, "client", client)
    return completions


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def _signup(client, email="house@example.com", name="Dr. Gregory House", password="vicodin123", **extra):
    payload = {"name": name, "email": email, "password": password, **extra}
    response = client.post("/api/auth/signup-doctor", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def doctor_auth(client):
    """Signed-up doctor: (doctor dict, auth headers)."""
    data = _signup(client)
    return data["doctor"], {"Authorization": f"Bearer {data['token']}"}


@pytest.fixture
def auth_headers(doctor_auth):
    return doctor_auth[1]


@pytest.fixture
def other_auth_headers(client):
    data = _signup(client, email="wilson@example.com", name="Dr. James Wilson")
    return {"Authorization": f"Bearer {data['token']}"}


@pytest.fixture
def patient(client, auth_headers):
    response = client.post(
        "/api/patients/create",
        json={"name": "John Doe", "age": 42, "gender": "male", "notes": "Allergic to penicillin"},
        headers=auth_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def _add_recording(patient_id, doctor_id, **fields):
    with get_session() as session:
        recording = Recording(patient_id=patient_id, doctor_id=doctor_id, audio_url=fields.pop("audio_url", "a.m4a"), **fields)
        session.add(recording)
        session.commit()
        session.refresh(recording)
        return recording


@pytest.fixture
def add_recording():
    """Insert a recording row directly, bypassing the upload route."""
    return _add_recording


@pytest.fixture
def signup(client):
    return lambda **kwargs: _signup(client, **kwargs)


@pytest.fixture
def db_patient():
    """Doctor and patient rows created without going through the API."""
    with get_session() as session:
        doctor = Doctor(name="Dr. Lisa Cuddy", email="cuddy@example.com", password_hash="x")
        session.add(doctor)
        session.commit()
        session.refresh(doctor)
        patient = Patient(name="Jane Roe", doctor_id=doctor.id)
        session.add(patient)
        session.commit()
        session.refresh(patient)
        return patient

