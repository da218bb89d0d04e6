"""
Consultation recordings: upload, listing, deletion, patient summaries and translation
"""

import asyncio
from typing import Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Request, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.config import settings
from app.core.exceptions import StorageError, TranscriptionError, TranslationError
from app.core.logging import get_logger
from app.core.rate_limit import limiter, default_limit
from app.core.security import get_current_doctor
from app.db import get_db
from app.models.db_models import Doctor, Patient, Recording, RecordingStatus
from app.models.requests import SummaryTranslateRequest, TranslateRequest
from app.models.responses import MessageResponse, PatientHistorySummary, RecordingRead, TranslationResponse
from app.routes.patients import get_owned_patient
from app.services.audio_processor import audio_processor
from app.services.llm_service import llm_service
from app.services.recording_processor import recording_processor
from app.services.storage_service import storage_service
from app.services.stt_service import stt_service
from app.services.translation_service import is_english, translation_service

logger = get_logger(__name__)

router = APIRouter(prefix="/api/recordings", tags=["recordings"])


def get_owned_recording(session: Session, recording_id: str, doctor: Doctor) -> Recording:
    recording = session.get(Recording, recording_id)
    if not recording:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recording not found")
    if recording.doctor_id != doctor.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")
    return recording


@router.post("/upload", response_model=RecordingRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(default_limit)
async def upload_recording(
    request: Request,
    background_tasks: BackgroundTasks,
    audio: Optional[UploadFile] = File(None),
    patient_id: Optional[str] = Form(None, alias="patientId"),
    language: str = Form("en-US"),
    doctor: Doctor = Depends(get_current_doctor),
    session: Session = Depends(get_db),
):
    """
    Stores the audio, creates a PENDING recording and returns it at once.
    Transcription and summarization continue in the background.
    """
    if audio is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No audio file uploaded")
    if not patient_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="patientId is required")
    if language not in settings.supported_recording_languages:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported language '{language}'. Supported are: {', '.join(settings.supported_recording_languages)}",
        )
    if not session.get(Patient, patient_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")

    audio_data, content_type = await audio_processor.read_and_validate(audio)
    filename = audio_processor.build_filename(content_type)

    file_path = audio_url = None
    try:
        file_path = await audio_processor.save(audio_data, filename)
        metadata = await asyncio.to_thread(audio_processor.extract_metadata, file_path)
        audio_url = await storage_service.store(file_path, filename, content_type)

        recording = Recording(
            doctor_id=doctor.id,
            patient_id=patient_id,
            audio_url=audio_url,
            status=RecordingStatus.PENDING,
        )
        session.add(recording)
        session.commit()
        session.refresh(recording)
    except (OSError, SQLAlchemyError) as e:
        session.rollback()
        logger.error(f"Error uploading recording: {e}", exc_info=True)
        # No row points at the stored audio
        if audio_url:
            await storage_service.delete(audio_url)
        else:
            await audio_processor.cleanup(file_path)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error uploading recording")

    logger.info(f"Recording {recording.id} stored at {audio_url}, scheduling processing")
    background_tasks.add_task(
        recording_processor.process,
        recording_id=recording.id,
        audio_data=audio_data,
        filename=filename,
        language=language,
        sample_rate=metadata.get("sample_rate"),
    )
    return recording


@router.get("/patient/{patient_id}", response_model=List[RecordingRead])
async def list_recordings(patient_id: str, doctor: Doctor = Depends(get_current_doctor), session: Session = Depends(get_db)):
    get_owned_patient(session, patient_id, doctor)
    try:
        statement = (
            select(Recording)
            .where(Recording.patient_id == patient_id)
            .order_by(Recording.created_at.desc())
        )
        return session.exec(statement).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching recordings: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error fetching recordings")


@router.delete("/{recording_id}", response_model=MessageResponse)
async def delete_recording(recording_id: str, doctor: Doctor = Depends(get_current_doctor), session: Session = Depends(get_db)):
    recording = get_owned_recording(session, recording_id, doctor)
    audio_url = recording.audio_url

    try:
        session.delete(recording)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error deleting recording {recording_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error deleting recording")

    # Stored audio is removed after the row; failures here are only logged
    await storage_service.delete(audio_url)
    return MessageResponse(message="Recording deleted successfully")


async def _transcribe_missing(session: Session, recordings: List[Recording]):
    """Fills in transcripts for finished recordings that never got one."""
    for recording in recordings:
        # PENDING rows still have a background job in flight
        if recording.transcript or recording.status == RecordingStatus.PENDING:
            continue

        logger.info(f"[PatientSummary] Transcribing recording {recording.id}")
        try:
            audio_data = await storage_service.fetch(recording.audio_url)
            transcript, _ = await stt_service.transcribe(audio_data, recording.audio_url)
        except (StorageError, TranscriptionError) as e:
            logger.error(f"[PatientSummary] Failed to transcribe {recording.id}: {e}")
            continue

        recording.transcript = transcript
        session.add(recording)
        session.commit()
        session.refresh(recording)


async def _build_patient_summary(session: Session, patient_id: str) -> Dict[str, str]:
    recordings = session.exec(
        select(Recording)
        .where(Recording.patient_id == patient_id)
        .order_by(Recording.created_at.asc())
    ).all()
    logger.info(f"[PatientSummary] Found {len(recordings)} recordings for patient {patient_id}")

    if not recordings:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No recordings found for this patient")

    await _transcribe_missing(session, recordings)
    return await llm_service.summarize_patient_history(recordings)


@router.post("/patient/{patient_id}/summary", response_model=PatientHistorySummary)
async def generate_patient_summary(patient_id: str, doctor: Doctor = Depends(get_current_doctor), session: Session = Depends(get_db)):
    get_owned_patient(session, patient_id, doctor)
    try:
        return await _build_patient_summary(session, patient_id)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error generating patient summary: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error generating summary")


@router.post("/patient/{patient_id}/summary/translate", response_model=PatientHistorySummary)
async def translate_patient_summary(
    patient_id: str,
    payload: SummaryTranslateRequest,
    doctor: Doctor = Depends(get_current_doctor),
    session: Session = Depends(get_db),
):
    get_owned_patient(session, patient_id, doctor)

    try:
        if payload.summary:
            summary = payload.summary.model_dump()
        else:
            summary = await _build_patient_summary(session, patient_id)

        if is_english(payload.language) and not payload.force:
            return summary

        return await translation_service.translate_summary(summary, payload.language)
    except TranslationError as e:
        logger.error(f"Error translating patient summary: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error translating summary")
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error translating patient summary: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error translating summary")


@router.post("/{recording_id}/translate", response_model=TranslationResponse)
async def translate_recording(
    recording_id: str,
    payload: TranslateRequest,
    doctor: Doctor = Depends(get_current_doctor),
    session: Session = Depends(get_db),
):
    recording = session.get(Recording, recording_id)
    if not recording or not recording.transcript:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recording or transcript not found")
    if recording.doctor_id != doctor.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")

    # The stored transcript is English; serve it as-is unless a re-translation is forced
    if is_english(payload.language) and not payload.force:
        return TranslationResponse(translation=recording.transcript)

    try:
        translation = await translation_service.translate(recording.transcript, payload.language)
    except TranslationError as e:
        logger.error(f"Error translating recording {recording_id}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error translating recording")

    return TranslationResponse(translation=translation)
