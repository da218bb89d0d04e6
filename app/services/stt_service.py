"""
Speech-to-Text Service
Uses Google Cloud Speech-to-Text (REST) with an LLM-generated fallback transcript.
"""

import base64
import os
import time
from typing import Optional, Tuple

import httpx

from app.config import settings
from app.core.exceptions import LLMError, TranscriptionError
from app.core.logging import get_logger, audit_logger
from app.services.llm_service import LLMService, llm_service

logger = get_logger(__name__)

PROVIDER_GOOGLE = "google-stt"
PROVIDER_LLM = "llm-mock"

ENCODINGS = {
    ".mp3": "MP3",
    ".wav": "LINEAR16",
    ".flac": "FLAC",
    ".ogg": "OGG_OPUS",
    ".webm": "WEBM_OPUS",
}


class GoogleSpeechClient:
    """Thin client for the speech:recognize REST endpoint."""

    def __init__(self, api_key: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key if api_key is not None else settings.google_cloud_api_key
        self.transport = transport

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def encoding_for(filename: str) -> str:
        _, ext = os.path.splitext(filename or "")
        # M4A/AAC are not supported without conversion; the fallback covers them
        return ENCODINGS.get(ext.lower(), "ENCODING_UNSPECIFIED")

    async def recognize(
        self,
        audio_data: bytes,
        filename: str,
        language_code: str = "en-US",
        sample_rate: Optional[int] = None,
    ) -> str:
        if not self.is_configured():
            raise TranscriptionError("Google Cloud API key not configured", provider=PROVIDER_GOOGLE)

        logger.info(f"[Google STT] Transcribing {filename} in language {language_code}")

        config = {
            "encoding": self.encoding_for(filename),
            "languageCode": language_code,
            "enableAutomaticPunctuation": True,
            "model": "default",
        }
        if sample_rate:
            config["sampleRateHertz"] = sample_rate

        body = {
            "config": config,
            "audio": {"content": base64.b64encode(audio_data).decode("ascii")},
        }

        start = time.time()
        try:
            async with httpx.AsyncClient(timeout=settings.stt_timeout, transport=self.transport) as client:
                response = await client.post(settings.google_speech_url, params={"key": self.api_key}, json=body)
        except httpx.HTTPError as e:
            raise TranscriptionError(f"Google STT request failed: {e}", provider=PROVIDER_GOOGLE) from e

        audit_logger.log_external_api_call(
            service=PROVIDER_GOOGLE,
            endpoint=settings.google_speech_url,
            response_status=response.status_code,
            response_time_ms=int((time.time() - start) * 1000),
        )

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.status_code >= 400 or "error" in data:
            message = data.get("error", {}).get("message") if isinstance(data.get("error"), dict) else None
            raise TranscriptionError(
                f"Google STT returned {response.status_code}: {message or response.text[:200]}",
                provider=PROVIDER_GOOGLE,
            )

        results = data.get("results") or []
        transcript = "\n".join(
            r["alternatives"][0]["transcript"]
            for r in results
            if r.get("alternatives") and r["alternatives"][0].get("transcript")
        )
        if not transcript.strip():
            raise TranscriptionError("Google STT returned no transcription results", provider=PROVIDER_GOOGLE)

        logger.info(f"[Google STT] Success: {len(transcript)} characters")
        return transcript


class STTService:
    """Transcription with a primary provider and a single LLM fallback."""

    def __init__(self, google_client: Optional[GoogleSpeechClient] = None, llm: Optional[LLMService] = None):
        self.google = google_client or GoogleSpeechClient()
        self.llm = llm or llm_service

    async def transcribe(
        self,
        audio_data: bytes,
        filename: str,
        language: str = "en-US",
        sample_rate: Optional[int] = None,
    ) -> Tuple[str, str]:
        """
        Returns (transcript, provider).
        Raises TranscriptionError when both Google STT and the LLM fallback fail.
        """
        if self.google.is_configured():
            try:
                transcript = await self.google.recognize(audio_data, filename, language, sample_rate)
                return transcript, PROVIDER_GOOGLE
            except TranscriptionError as e:
                logger.warning(f"[Google STT] Failed, falling back to LLM transcript: {e}")
        else:
            logger.info("[Google STT] Not configured, using LLM transcript")

        try:
            transcript = await self.llm.generate_mock_transcript()
        except LLMError as e:
            raise TranscriptionError(f"All transcription providers failed: {e}", provider=PROVIDER_LLM) from e
        return transcript, PROVIDER_LLM


stt_service = STTService()
