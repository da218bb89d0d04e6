"""
LLM Service for consultation summaries, translation and the mock transcript
"""
import json
import re
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI
from pydantic import ValidationError

from app.config import settings
from app.core.exceptions import LLMError
from app.core.logging import get_logger
from app.models.db_models import Recording
from app.models.responses import ConsultationSummary, PatientHistorySummary

logger = get_logger(__name__)

_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")

LANGUAGE_PROMPTS = {
    "Kannada": """You are a professional Kannada translator specialising in medical terminology.

Translate the following medical text into natural, everyday Kannada that common people can understand.

RULES:
1. Use proper Kannada script (ಕನ್ನಡ), not transliterated English
2. Use simple, spoken Kannada words from daily life
3. Avoid Sanskrit-heavy or literary Kannada
4. Break long sentences into short, clear statements
5. Use the common medical terms people already know

EXAMPLES:
- "headache" -> "ತಲೆನೋವು"
- "stomach pain" -> "ಹೊಟ್ಟೆ ನೋವು"
- "fever" -> "ಜ್ವರ"
- "medicine" -> "ಔಷಧಿ" or "ಮಾತ್ರೆ"
- "blood pressure" -> "ರಕ್ತದೊತ್ತಡ" or "BP"

TONE: a friendly doctor speaking to a patient in a clinic.

Text to translate:
"{text}"

Respond ONLY with the Kannada translation. No English, no explanations.""",
    "Hindi": """You are a Hindi translator.

Translate the following text into simple, natural, daily-spoken Hindi that anyone can easily understand.

RULES:
- Use commonly spoken Hindi words (like "सिरदर्द", not "शिरोवेदना")
- Avoid textbook Hindi and complex grammar
- Avoid mixing in English unless necessary
- Explain any medical term in simple Hindi
- Tone: a friendly doctor speaking to a patient

Text to translate:
"{text}"

Respond ONLY with the Hindi translation. No explanations or additional text.""",
}

GENERIC_TRANSLATION_PROMPT = """Translate the following text into simple, everyday {language}:
"{text}"

Respond ONLY with the translation."""

MOCK_TRANSCRIPT_PROMPT = """Generate a detailed, realistic medical consultation transcript between a doctor and a patient.

Requirements:
- Language: English only.
- Length: at least 150 words.
- Content: patient complaints, the doctor's questions, physical exam findings and a plan.
- Scenario: pick a random common medical issue (flu, migraine, back pain, hypertension checkup, ...).
- Format: only the dialogue and clinical notes, no introduction such as "Here is a transcript".

Respond ONLY with the transcript text."""

CONSULTATION_SUMMARY_PROMPT = """You are a medical AI assistant. Analyze the following medical consultation transcript and provide a structured summary in JSON format.

The JSON must have exactly these fields:
- chiefComplaint: main reason for the visit (string)
- history: relevant medical history (string)
- diagnosis: clinical assessment (string)
- medication: prescribed medications with dosage (string)
- followUp: follow-up instructions (string)

Consultation transcript:
{transcript}

Respond ONLY with valid JSON, no additional text."""

PATIENT_HISTORY_PROMPT = """You are a medical AI assistant. Analyze the following history of patient consultations and provide a comprehensive summary.

Your response MUST be valid JSON with exactly these two fields:
1. "concise": a short paragraph (max 50 words) on the patient's overall trajectory, key recurring issues and current status.
2. "detailed": a markdown string detailing the timeline of symptoms, treatments tried and their outcomes.

Patient history:
{history}

Respond ONLY with valid JSON."""


def strip_code_fences(text: str) -> str:
    """Removes a surrounding ```json ... ``` fence and whitespace."""
    return _CODE_FENCE.sub("", text.strip()).strip()


def parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Parses the first JSON object in a model answer, or returns None."""
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        # Fall back to the outermost {...} block
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            data = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError:
            return None
    return data if isinstance(data, dict) else None


def fallback_consultation_summary(raw_text: str) -> Dict[str, str]:
    """Summary stored when the model answer is not usable JSON; keeps the raw answer."""
    return ConsultationSummary(
        chief_complaint="Unable to parse summary",
        history=raw_text,
        diagnosis="Please review transcript manually",
        medication="N/A",
        follow_up="N/A",
    ).model_dump(by_alias=True)


class LLMService:
    """Service for prompting the LLM through an OpenAI-compatible endpoint."""

    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self.client = client or AsyncOpenAI(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            timeout=settings.llm_timeout,
            max_retries=0,
        )
        self.model = settings.llm_model
        self.temperature = settings.llm_temperature
        self.max_tokens = settings.llm_max_tokens

    async def _complete(self, prompt: str, json_mode: bool = False) -> str:
        """Single chat completion; raises LLMError on transport failures or empty answers."""
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                **kwargs,
            )
        except Exception as e:
            raise LLMError(f"LLM request failed: {e}", provider="llm") from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content or not content.strip():
            raise LLMError("LLM returned an empty response", provider="llm")
        return content.strip()

    async def generate_mock_transcript(self) -> str:
        """
        Asks the model to invent a plausible consultation transcript.
        Stand-in for real speech-to-text when Google STT is unavailable.
        """
        logger.warning("Speech-to-text unavailable, generating mock transcript with the LLM")
        return await self._complete(MOCK_TRANSCRIPT_PROMPT)

    async def summarize_consultation(self, transcript: str) -> Dict[str, str]:
        """
        Structured summary (camelCase keys) of one consultation.
        Malformed JSON yields the fallback summary; LLMError propagates.
        """
        raw = await self._complete(CONSULTATION_SUMMARY_PROMPT.format(transcript=transcript), json_mode=True)

        data = parse_json_object(raw)
        if data is None:
            logger.error(f"Could not parse consultation summary JSON. Raw response: '{raw[:500]}'")
            return fallback_consultation_summary(raw)

        try:
            summary = ConsultationSummary.model_validate(data)
        except ValidationError as e:
            logger.error(f"Consultation summary has an unexpected shape: {e}")
            return fallback_consultation_summary(raw)

        if not summary.model_fields_set:
            logger.error(f"Consultation summary JSON has none of the expected fields: '{raw[:500]}'")
            return fallback_consultation_summary(raw)

        logger.info("Consultation summary generated.")
        return summary.model_dump(by_alias=True)

    async def summarize_patient_history(self, recordings: List[Recording]) -> Dict[str, str]:
        """Aggregate {concise, detailed} summary; never raises."""
        logger.info(f"Summarizing patient history over {len(recordings)} recordings")

        consultations = []
        for index, recording in enumerate(recordings, start=1):
            date = recording.created_at.strftime("%Y-%m-%d") if recording.created_at else "unknown date"
            if recording.summary:
                content = json.dumps(recording.summary)
            else:
                content = recording.transcript or "No transcript available"
            consultations.append(f"Consultation {index} ({date}):\n{content}\n")
        history = "\n---\n\n".join(consultations)

        try:
            raw = await self._complete(PATIENT_HISTORY_PROMPT.format(history=history), json_mode=True)
        except LLMError as e:
            logger.error(f"Patient history summary failed: {e}")
            return PatientHistorySummary(
                concise="Unable to generate summary.",
                detailed="AI processing failed.",
            ).model_dump()

        data = parse_json_object(raw)
        try:
            if data is None:
                raise ValueError("no JSON object in response")
            return PatientHistorySummary.model_validate(data).model_dump()
        except (ValueError, ValidationError) as e:
            logger.error(f"Could not parse patient history summary: {e}")
            return PatientHistorySummary(concise="Unable to generate summary.", detailed=raw).model_dump()

    async def translate(self, text: str, target_language: str) -> str:
        """Prompted translation; raises LLMError on failure."""
        template = LANGUAGE_PROMPTS.get(target_language)
        if template:
            prompt = template.format(text=text)
        else:
            prompt = GENERIC_TRANSLATION_PROMPT.format(language=target_language, text=text)

        logger.info(f"[Translation] Translating with the LLM into {target_language}")
        return await self._complete(prompt)


llm_service = LLMService()
