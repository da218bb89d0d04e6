"""
Patient CRUD and ownership.
"""

import os
from datetime import datetime, timedelta, timezone

from sqlmodel import select

from app.db import get_session
from app.models.db_models import Doctor, Recording, RecordingStatus
from app.services.audio_processor import audio_processor


def test_create_patient(client, auth_headers, doctor_auth):
    response = client.post(
        "/api/patients/create",
        json={"name": "Alice", "age": 30, "gender": "female", "notes": "Asthma"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Alice"
    assert body["age"] == 30
    assert body["doctorId"] == doctor_auth[0]["id"]
    assert "createdAt" in body


def test_create_patient_requires_name(client, auth_headers):
    response = client.post("/api/patients/create", json={"age": 30}, headers=auth_headers)

    assert response.status_code == 400


def test_create_patient_rejects_bad_age(client, auth_headers):
    response = client.post("/api/patients/create", json={"name": "Bob", "age": "old"}, headers=auth_headers)

    assert response.status_code == 400
    assert "age" in response.json()["error"]


def test_list_only_own_patients(client, auth_headers, other_auth_headers):
    client.post("/api/patients/create", json={"name": "Mine"}, headers=auth_headers)
    client.post("/api/patients/create", json={"name": "Theirs"}, headers=other_auth_headers)

    response = client.get("/api/patients", headers=auth_headers)

    assert response.status_code == 200
    assert [p["name"] for p in response.json()] == ["Mine"]


def test_get_patient_includes_recordings_newest_first(client, auth_headers, patient, add_recording):
    now = datetime.now(timezone.utc)
    add_recording(patient["id"], patient["doctorId"], audio_url="old.m4a", created_at=now - timedelta(days=2))
    add_recording(patient["id"], patient["doctorId"], audio_url="new.m4a", created_at=now)

    response = client.get(f"/api/patients/{patient['id']}", headers=auth_headers)

    assert response.status_code == 200
    assert [r["audioUrl"] for r in response.json()["recordings"]] == ["new.m4a", "old.m4a"]


def test_get_other_doctors_patient_is_not_found(client, patient, other_auth_headers):
    response = client.get(f"/api/patients/{patient['id']}", headers=other_auth_headers)

    assert response.status_code == 404


def test_update_patient_notes(client, auth_headers, patient):
    response = client.put(
        f"/api/patients/{patient['id']}",
        json={"notes": "Now also allergic to sulfa drugs"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["notes"] == "Now also allergic to sulfa drugs"
    assert body["name"] == "John Doe"
    assert body["age"] == 42


def test_update_other_doctors_patient_is_forbidden(client, patient, other_auth_headers):
    response = client.put(f"/api/patients/{patient['id']}", json={"notes": "x"}, headers=other_auth_headers)

    assert response.status_code == 403


def test_update_missing_patient(client, auth_headers):
    response = client.put("/api/patients/nope", json={"notes": "x"}, headers=auth_headers)

    assert response.status_code == 404


def test_delete_patient_removes_recordings(client, auth_headers, patient, add_recording):
    add_recording(patient["id"], patient["doctorId"], transcript="t", status=RecordingStatus.COMPLETED)
    add_recording(patient["id"], patient["doctorId"])

    response = client.delete(f"/api/patients/{patient['id']}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Patient deleted successfully"
    with get_session() as session:
        remaining = session.exec(select(Recording).where(Recording.patient_id == patient["id"])).all()
    assert remaining == []
    assert client.get(f"/api/patients/{patient['id']}", headers=auth_headers).status_code == 404


def test_delete_patient_removes_local_audio(client, auth_headers, patient, add_recording):
    path = audio_processor.path_for("to-delete.m4a")
    audio_processor._write(path, b"audio")
    add_recording(patient["id"], patient["doctorId"], audio_url="to-delete.m4a")

    client.delete(f"/api/patients/{patient['id']}", headers=auth_headers)

    assert not os.path.exists(path)


def test_delete_other_doctors_patient_is_forbidden(client, patient, other_auth_headers):
    response = client.delete(f"/api/patients/{patient['id']}", headers=other_auth_headers)

    assert response.status_code == 403


def test_delete_missing_patient(client, auth_headers):
    response = client.delete("/api/patients/nope", headers=auth_headers)

    assert response.status_code == 404


def test_new_rows_carry_utc_timestamps(client, auth_headers):
    doctor = Doctor(name="Dr. Allison Cameron", email="cameron@example.com", password_hash="x")
    assert doctor.created_at.utcoffset() == timedelta(0)

    response = client.post("/api/patients/create", json={"name": "Timestamped"}, headers=auth_headers)

    assert response.status_code == 201
    created = datetime.fromisoformat(response.json()["createdAt"].replace("Z", "+00:00"))
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    assert abs(datetime.now(timezone.utc) - created) < timedelta(minutes=5)
