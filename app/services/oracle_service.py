import google.generativeai as genai
from openai import AsyncOpenAI
from app.core.config import settings
from app.core.errors import OracleError, OracleUnavailable, OracleRateLimited, OracleQuotaExceeded
from app.config.constants import (
    ORACLE_PROVIDER_GEMINI,
    ORACLE_PROVIDER_OPENAI,
    ORACLE_STATUS_RATE_LIMITED,
    ORACLE_STATUS_PAYMENT_REQUIRED,
    ORACLE_QUOTA_MARKERS,
)
import asyncio
import json
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


def _status_of(exc: Exception) -> Optional[int]:
    # openai exposes status_code, google.api_core exposes code
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def classify_oracle_error(exc: Exception) -> OracleError:
    """Map a provider exception onto the oracle failure taxonomy."""
    if isinstance(exc, OracleError):
        return exc

    status = _status_of(exc)
    message = str(exc)
    lowered = message.lower()

    if status == ORACLE_STATUS_PAYMENT_REQUIRED:
        return OracleQuotaExceeded("AI usage limit reached. Please try again later.", status_code=status)
    if status == ORACLE_STATUS_RATE_LIMITED:
        if any(marker in lowered for marker in ORACLE_QUOTA_MARKERS):
            return OracleQuotaExceeded("AI usage limit reached. Please try again later.", status_code=status)
        return OracleRateLimited("Rate limits exceeded, please try again later.", status_code=status)
    if isinstance(exc, asyncio.TimeoutError):
        return OracleUnavailable("Oracle call timed out")
    return OracleUnavailable(f"Oracle error: {exc.__class__.__name__}", status_code=status)


def _strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Parse the oracle payload into a dict.

    Models sometimes wrap the object in prose or markdown, so when the whole
    payload is not an object the first well-formed ``{...}`` substring wins.

    Raises:
        OracleUnavailable: if no JSON object can be found.
    """
    if not text:
        raise OracleUnavailable("Empty oracle response")

    cleaned = _strip_code_fences(text)
    try:
        parsed = json.loads(cleaned)
        if isinstance(parsed, dict):
            return parsed
    except ValueError:
        pass

    decoder = json.JSONDecoder()
    start = cleaned.find("{")
    while start != -1:
        try:
            parsed, _ = decoder.raw_decode(cleaned, start)
            if isinstance(parsed, dict):
                return parsed
        except ValueError:
            pass
        start = cleaned.find("{", start + 1)

    logger.error(f"Malformed oracle response (first 200 chars): {text[:200]!r}")
    raise OracleUnavailable("Malformed oracle response")


class OracleService:
    """
    Client for the language-model oracle.

    Gemini is preferred, an OpenAI-compatible endpoint is the alternative.
    Every call is bounded by a timeout and every failure is raised as an
    OracleError subtype; callers decide whether to fall back.
    """

    def __init__(
        self,
        gemini_api_key: str = None,
        openai_api_key: str = None,
        preferred_provider: str = None,
        timeout: float = None,
    ):
        self.provider = None
        self.gemini_model = None
        self.openai_client = None
        self.timeout = timeout or settings.ORACLE_TIMEOUT_SECONDS

        g_key = gemini_api_key or settings.GEMINI_API_KEY
        o_key = openai_api_key or settings.OPENAI_API_KEY
        preferred = preferred_provider or settings.ORACLE_PROVIDER

        order = [ORACLE_PROVIDER_GEMINI, ORACLE_PROVIDER_OPENAI]
        if preferred == ORACLE_PROVIDER_OPENAI:
            order.reverse()

        for provider in order:
            if provider == ORACLE_PROVIDER_GEMINI and g_key:
                try:
                    genai.configure(api_key=g_key)
                    self.gemini_model = genai.GenerativeModel(settings.GEMINI_MODEL)
                    self.provider = ORACLE_PROVIDER_GEMINI
                except Exception as e:
                    logger.error(f"Failed to configure Gemini: {e}")
                    self.gemini_model = None
            elif provider == ORACLE_PROVIDER_OPENAI and o_key:
                try:
                    self.openai_client = AsyncOpenAI(api_key=o_key, base_url=settings.OPENAI_BASE_URL)
                    self.provider = ORACLE_PROVIDER_OPENAI
                except Exception as e:
                    logger.error(f"Failed to configure OpenAI: {e}")
                    self.openai_client = None
            if self.provider:
                logger.info(f"OracleService initialized with {self.provider}")
                break

        if not self.provider:
            logger.warning("No oracle provider available (GEMINI_API_KEY and OPENAI_API_KEY are missing or invalid)")

    async def complete_json(self, prompt: str, system_prompt: str = None) -> Dict[str, Any]:
        text = await self._complete(prompt, system_prompt=system_prompt, json_mode=True)
        return extract_json_object(text)

    async def complete_text(self, prompt: str, system_prompt: str = None) -> str:
        text = await self._complete(prompt, system_prompt=system_prompt, json_mode=False)
        text = (text or "").strip()
        if not text:
            raise OracleUnavailable("Empty oracle response")
        return text

    async def _complete(self, prompt: str, system_prompt: str = None, json_mode: bool = False) -> str:
        if not self.provider:
            raise OracleUnavailable("No oracle provider configured")

        if self.provider == ORACLE_PROVIDER_GEMINI:
            call = self._call_gemini(prompt, system_prompt, json_mode)
        else:
            call = self._call_openai(prompt, system_prompt, json_mode)

        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.CancelledError:
            # Abandoned by the caller; nothing to compensate
            raise
        except Exception as e:
            error = classify_oracle_error(e)
            logger.warning(f"Oracle call via {self.provider} failed: {error.code} ({e.__class__.__name__})")
            raise error from e

    async def _call_gemini(self, prompt: str, system_prompt: Optional[str], json_mode: bool) -> str:
        content = f"{system_prompt}\n\n{prompt}" if system_prompt else prompt
        generation_config = None
        if json_mode:
            generation_config = genai.GenerationConfig(response_mime_type="application/json")
        response = await self.gemini_model.generate_content_async(content, generation_config=generation_config)
        return response.text

    async def _call_openai(self, prompt: str, system_prompt: Optional[str], json_mode: bool) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {"model": settings.OPENAI_MODEL, "messages": messages}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = await self.openai_client.chat.completions.create(**kwargs)
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
