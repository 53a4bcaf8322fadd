import json
import re
from typing import Optional

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from edualert.core.config import settings
from edualert.schemas.ai import TriageVerdict

logger = structlog.get_logger()

TRIAGE_PROMPT = """You are an AI assistant for the Guyana Ministry of Education's teacher absence reporting system.

Analyze this teacher absence report and determine if it contains sufficient, meaningful information to warrant investigation by education officers.

Report Details:
- School: {school_name}
- Grade: {grade}
- Teacher Name: {teacher_name}
- Subject: {subject}
- Reporter Type: {reporter_type}
- Description: {description}

Mark the report INVALID if ANY of the following apply:
1. Teacher name is gibberish, random characters, or meaningless
2. Description contains only random characters, keyboard mashing, or nonsensical text
3. Subject field contains gibberish or random text
4. Description is extremely vague with no actionable information (just "absent" or "not here")
5. Multiple fields contain what appears to be test data or placeholder text
6. The combination of fields suggests this is spam, test data, or not a genuine report

VALID reports have recognizable human names (even if misspelled), coherent descriptions of an
actual absence situation, meaningful subject names, and logical consistency across fields.

Respond ONLY with a JSON object:
{{"isValid": true/false, "reason": "Clear explanation", "confidence": 0.0-1.0}}"""

CHAT_CONTEXT = """You are EduAlert AI, an assistant for analyzing teacher absence reports in Guyana's education system.

Guidelines:
1. Provide real data and statistics when a data context is supplied
2. Never mention table names, database schemas, or implementation details
3. Focus on educational insights and actionable information
4. Use bullet points and clear formatting
5. When you don't have specific data, clearly state limitations"""


class GeminiService:
    """
    Thin gateway to the Gemini text-generation API.

    Every call is bounded by AI_TIMEOUT_SECONDS. Failures are logged and
    surface as None; callers decide on the fallback.
    """

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

    @classmethod
    async def _call_gemini(cls, prompt: str, temperature: float = 0.1, max_tokens: int = 500) -> Optional[str]:
        if not settings.GEMINI_API_KEY:
            logger.warning("gemini_api_key_missing")
            return None

        url = f"{cls.BASE_URL}/{settings.GEMINI_MODEL}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": max_tokens,
            },
        }

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    url,
                    params={"key": settings.GEMINI_API_KEY},
                    json=payload,
                    timeout=settings.AI_TIMEOUT_SECONDS,
                )
                if response.status_code != 200:
                    logger.error("gemini_api_error", status=response.status_code, body=response.text[:500])
                    return None

                data = response.json()
                return data["candidates"][0]["content"]["parts"][0]["text"]
            except httpx.TimeoutException:
                logger.error("gemini_request_timeout", timeout=settings.AI_TIMEOUT_SECONDS)
                return None
            except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as e:
                logger.error("gemini_request_failed", error=str(e))
                return None

    @staticmethod
    def parse_verdict(text: str) -> Optional[TriageVerdict]:
        """Pull the first JSON object out of a free-text completion."""
        match = re.search(r"\{[\s\S]*\}", text or "")
        if not match:
            logger.error("gemini_parse_error", reason="no_json_object", content=(text or "")[:200])
            return None
        try:
            return TriageVerdict.model_validate(json.loads(match.group(0)))
        except (ValueError, PydanticValidationError) as e:
            logger.error("gemini_parse_error", error=str(e), content=match.group(0)[:200])
            return None

    @classmethod
    async def analyze_report(cls, report_data: dict) -> Optional[TriageVerdict]:
        prompt = TRIAGE_PROMPT.format(**report_data)
        text = await cls._call_gemini(prompt)
        if text is None:
            return None
        return cls.parse_verdict(text)

    @classmethod
    async def chat(cls, message: str, data_context: str = "") -> Optional[str]:
        context_block = f"CURRENT DATA CONTEXT:\n{data_context}\n\n" if data_context else ""
        prompt = (
            f"{CHAT_CONTEXT}\n\n{context_block}USER QUESTION: {message}\n\n"
            "Provide a helpful, data-driven response.\n\nRESPONSE:"
        )
        return await cls._call_gemini(prompt, temperature=0.4, max_tokens=1024)
