"""
Translation Service
Google Cloud Translation v2 (REST) first, LLM-prompted translation as fallback.
"""

import html
import time
from typing import Dict, Optional

import httpx

from app.config import settings
from app.core.exceptions import LLMError, TranslationError
from app.core.logging import get_logger, audit_logger
from app.services.llm_service import LLMService, llm_service

logger = get_logger(__name__)

LANGUAGE_CODES = {
    "English": "en",
    "Hindi": "hi",
    "Kannada": "kn",
}


def language_code(language: str) -> str:
    return LANGUAGE_CODES.get(language, language.lower())


def is_english(language: str) -> bool:
    return language_code(language) == "en"


class GoogleTranslateClient:
    """Thin client for the translate/v2 REST endpoint."""

    def __init__(self, api_key: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key if api_key is not None else settings.google_cloud_api_key
        self.transport = transport

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def translate(self, text: str, target_language: str) -> str:
        target = language_code(target_language)
        logger.info(f"[Google Translate] Translating to {target_language} ({target})")

        start = time.time()
        response = None
        try:
            async with httpx.AsyncClient(timeout=settings.translate_timeout, transport=self.transport) as client:
                response = await client.post(
                    settings.google_translate_url,
                    params={"key": self.api_key},
                    json={"q": text, "target": target, "format": "text"},
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TranslationError(f"Google translation failed: {e}", provider="google-translate") from e
        finally:
            audit_logger.log_external_api_call(
                service="google-translate",
                endpoint=settings.google_translate_url,
                response_status=response.status_code if response is not None else 0,
                response_time_ms=int((time.time() - start) * 1000),
            )

        try:
            translated = data["data"]["translations"][0]["translatedText"]
        except (KeyError, IndexError, TypeError) as e:
            raise TranslationError(f"Unexpected Google translation payload: {e}", provider="google-translate") from e

        logger.info("[Google Translate] Translation successful")
        return html.unescape(translated)


class TranslationService:
    """Primary/fallback translation chain."""

    def __init__(self, google_client: Optional[GoogleTranslateClient] = None, llm: Optional[LLMService] = None):
        self.google = google_client or GoogleTranslateClient()
        self.llm = llm or llm_service

    async def translate(self, text: str, target_language: str) -> str:
        """Raises TranslationError when every provider fails."""
        if self.google.is_configured():
            try:
                return await self.google.translate(text, target_language)
            except TranslationError as e:
                logger.warning(f"[Translation] Google Translate failed, falling back to LLM: {e}")
        else:
            logger.info("[Translation] Google Cloud API key not configured, using LLM")

        try:
            return await self.llm.translate(text, target_language)
        except LLMError as e:
            raise TranslationError(f"Translation failed: {e}", provider="llm") from e

    async def translate_summary(self, summary: Dict[str, str], target_language: str) -> Dict[str, str]:
        """Translates every field of a {concise, detailed} patient summary."""
        translated = {}
        for key, value in summary.items():
            translated[key] = await self.translate(value, target_language) if value else value
        return translated


translation_service = TranslationService()
