"""
Background processing of uploaded consultations.

PENDING -> transcribe -> summarize -> COMPLETED, any failure -> FAILED.
Each job runs unawaited after the upload response and writes through its own
session in a worker thread, keeping the event loop free for requests;
jobs are not coordinated with each other.
"""

import asyncio
import time
from typing import Optional

from prometheus_client import Counter, Histogram

from app.core.logging import get_logger, audit_logger
from app.db import get_session
from app.models.db_models import Recording, RecordingStatus
from app.services.llm_service import LLMService, llm_service
from app.services.stt_service import STTService, stt_service

logger = get_logger(__name__)

recordings_processed = Counter(
    'recordings_processed_total', 'Recordings that finished background processing', ['status', 'provider']
)
recording_processing_duration = Histogram(
    'recording_processing_duration_seconds', 'Duration of transcription plus summarization'
)


class RecordingDeleted(Exception):
    """The row disappeared while its job was running."""


class RecordingProcessor:

    def __init__(self, stt: Optional[STTService] = None, llm: Optional[LLMService] = None):
        self.stt = stt or stt_service
        self.llm = llm or llm_service

    async def process(
        self,
        recording_id: str,
        audio_data: bytes,
        filename: str,
        language: str = "en-US",
        sample_rate: Optional[int] = None,
    ):
        start_time = time.time()
        provider = "none"
        final_status = RecordingStatus.FAILED
        logger.info(f"Starting processing for recording {recording_id}")

        try:
            # 1. Transcribe
            transcript, provider = await self.stt.transcribe(audio_data, filename, language, sample_rate)
            await asyncio.to_thread(self._update, recording_id, transcript=transcript)

            # 2. Summarize; status flips only once both fields are stored
            summary = await self.llm.summarize_consultation(transcript)
            await asyncio.to_thread(self._update, recording_id, summary=summary, status=RecordingStatus.COMPLETED)

            final_status = RecordingStatus.COMPLETED
            logger.info(f"Processing completed for recording {recording_id}")

        except RecordingDeleted:
            logger.info(f"Recording {recording_id} was deleted during processing, dropping result")
            return

        except Exception as e:
            logger.error(f"Error processing recording {recording_id}: {e}", exc_info=True)
            audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                recording_id=recording_id,
            )
            try:
                await asyncio.to_thread(self._update, recording_id, status=RecordingStatus.FAILED)
            except RecordingDeleted:
                return
            except Exception as db_error:
                logger.error(f"Could not mark recording {recording_id} as FAILED: {db_error}", exc_info=True)

        duration = time.time() - start_time
        recording_processing_duration.observe(duration)
        recordings_processed.labels(status=final_status.value, provider=provider).inc()
        audit_logger.log_recording_processing(
            recording_id=recording_id,
            status=final_status.value,
            transcription_provider=provider,
            language=language,
            processing_time_ms=int(duration * 1000),
        )

    @staticmethod
    def _update(recording_id: str, **fields):
        with get_session() as session:
            recording = session.get(Recording, recording_id)
            if recording is None:
                raise RecordingDeleted(recording_id)
            for name, value in fields.items():
                setattr(recording, name, value)
            session.add(recording)
            session.commit()


recording_processor = RecordingProcessor()
