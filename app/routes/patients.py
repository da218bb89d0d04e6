"""
Patient CRUD, scoped to the authenticated doctor
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.logging import get_logger
from app.core.security import get_current_doctor
from app.db import get_db
from app.models.db_models import Doctor, Patient
from app.models.requests import PatientCreateRequest, PatientUpdateRequest
from app.models.responses import MessageResponse, PatientDetail, PatientRead
from app.services.storage_service import storage_service

logger = get_logger(__name__)

router = APIRouter(prefix="/api/patients", tags=["patients"])


def get_owned_patient(session: Session, patient_id: str, doctor: Doctor) -> Patient:
    """404 when the patient does not exist, 403 when another doctor owns it."""
    patient = session.get(Patient, patient_id)
    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    if patient.doctor_id != doctor.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")
    return patient


@router.post("/create", response_model=PatientRead, status_code=status.HTTP_201_CREATED)
async def create_patient(
    payload: PatientCreateRequest,
    doctor: Doctor = Depends(get_current_doctor),
    session: Session = Depends(get_db),
):
    if not payload.name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Patient name is required")

    try:
        patient = Patient(
            name=payload.name,
            age=payload.age,
            gender=payload.gender,
            notes=payload.notes,
            doctor_id=doctor.id,
        )
        session.add(patient)
        session.commit()
        session.refresh(patient)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error creating patient: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error creating patient")

    logger.info(f"Patient {patient.id} created by doctor {doctor.id}")
    return patient


@router.get("", response_model=List[PatientRead])
async def list_patients(doctor: Doctor = Depends(get_current_doctor), session: Session = Depends(get_db)):
    try:
        statement = (
            select(Patient)
            .where(Patient.doctor_id == doctor.id)
            .order_by(Patient.created_at.desc())
        )
        return session.exec(statement).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching patients: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error fetching patients")


@router.get("/{patient_id}", response_model=PatientDetail)
async def get_patient(patient_id: str, doctor: Doctor = Depends(get_current_doctor), session: Session = Depends(get_db)):
    patient = session.get(Patient, patient_id)
    # Other doctors' patients are reported as missing
    if not patient or patient.doctor_id != doctor.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")

    detail = PatientDetail.model_validate(patient)
    detail.recordings.sort(key=lambda r: r.created_at, reverse=True)
    return detail


@router.put("/{patient_id}", response_model=PatientRead)
async def update_patient(
    patient_id: str,
    payload: PatientUpdateRequest,
    doctor: Doctor = Depends(get_current_doctor),
    session: Session = Depends(get_db),
):
    patient = get_owned_patient(session, patient_id, doctor)

    try:
        for name, value in payload.model_dump(exclude_unset=True).items():
            if name == "name" and not value:
                continue
            setattr(patient, name, value)
        session.add(patient)
        session.commit()
        session.refresh(patient)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error updating patient {patient_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error updating patient")

    return patient


@router.delete("/{patient_id}", response_model=MessageResponse)
async def delete_patient(patient_id: str, doctor: Doctor = Depends(get_current_doctor), session: Session = Depends(get_db)):
    patient = get_owned_patient(session, patient_id, doctor)
    audio_urls = [recording.audio_url for recording in patient.recordings]

    try:
        # Recordings go with the patient (delete-orphan cascade)
        session.delete(patient)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error deleting patient {patient_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error deleting patient")

    for audio_url in audio_urls:
        await storage_service.delete(audio_url)

    logger.info(f"Patient {patient_id} and {len(audio_urls)} recordings deleted")
    return MessageResponse(message="Patient deleted successfully")
