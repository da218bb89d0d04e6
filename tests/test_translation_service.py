"""
Google Translate client and the LLM translation fallback.
"""

import json

import httpx
import pytest

from app.core.exceptions import TranslationError
from app.services.translation_service import (
    GoogleTranslateClient,
    TranslationService,
    is_english,
    language_code,
)


def google(handler):
    return GoogleTranslateClient(api_key="test-key", transport=httpx.MockTransport(handler))


def test_language_codes():
    assert language_code("Hindi") == "hi"
    assert language_code("Kannada") == "kn"
    assert language_code("Tamil") == "tamil"
    assert is_english("English")
    assert is_english("en")
    assert not is_english("Hindi")


async def test_google_translate_success(fake_llm):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["key"] = request.url.params["key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"translations": [{"translatedText": "ಜ್ವರ &amp; ತಲೆನೋವು"}]}})

    service = TranslationService(google_client=google(handler))
    result = await service.translate("fever & headache", "Kannada")

    assert result == "ಜ್ವರ & ತಲೆನೋವು"
    assert seen["key"] == "test-key"
    assert seen["body"] == {"q": "fever & headache", "target": "kn", "format": "text"}
    assert fake_llm.calls == []


async def test_google_failure_falls_back_to_llm(fake_llm):
    service = TranslationService(google_client=google(lambda request: httpx.Response(500, text="boom")))

    result = await service.translate("Take rest", "Hindi")

    assert result == "[translated] You are a Hindi translator."
    assert len(fake_llm.calls_of("translation")) == 1


async def test_unexpected_google_payload_falls_back_to_llm(fake_llm):
    service = TranslationService(google_client=google(lambda request: httpx.Response(200, json={"data": {}})))

    result = await service.translate("Take rest", "Hindi")

    assert result.startswith("[translated]")


async def test_unconfigured_google_uses_llm(fake_llm):
    service = TranslationService(google_client=GoogleTranslateClient(api_key=""))

    result = await service.translate("Take rest", "Kannada")

    assert result.startswith("[translated]")


async def test_all_providers_failing(fake_llm):
    fake_llm.errors["translation"] = ConnectionError("ollama down")
    service = TranslationService(google_client=google(lambda request: httpx.Response(503)))

    with pytest.raises(TranslationError):
        await service.translate("Take rest", "Hindi")


async def test_translate_summary_skips_empty_fields(fake_llm):
    service = TranslationService(google_client=GoogleTranslateClient(api_key=""))

    result = await service.translate_summary({"concise": "Improving", "detailed": ""}, "Hindi")

    assert result["concise"].startswith("[translated]")
    assert result["detailed"] == ""
    assert len(fake_llm.calls_of("translation")) == 1
