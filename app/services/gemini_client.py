import asyncio
import json
import re
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from app.config import AppConfig
from app.utils.logger import logger

T = TypeVar("T")


class GenerationError(RuntimeError):
    """The generative API did not produce a usable JSON answer."""


def cleanup_json(text: str) -> str:
    """
    Removes markdown fences such as ```json ... ```.
    Leaves clean JSON ready for json.loads().
    """
    text = re.sub(r"```json", "", text, flags=re.IGNORECASE)
    text = re.sub(r"```", "", text)
    return text.strip()


def extract_candidate_text(body: Any) -> str:
    """
    Pull candidates[0].content.parts[0].text out of a generateContent reply.
    """
    try:
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise GenerationError("Response has no candidate text") from e

    if not isinstance(text, str) or not text.strip():
        raise GenerationError("Empty candidate text")
    return text


class GeminiClient:
    """
    Thin async wrapper around the generateContent endpoint.

    One call = one POST. Retries live in call_with_retry so the policy can be
    shared by every caller.
    """

    def __init__(self, config: AppConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

        if not config.api_key:
            logger.warning("[GEMINI] Missing API key, requests will be rejected server-side")

    @property
    def endpoint(self) -> str:
        base = self.config.gemini_base_url.rstrip("/")
        return f"{base}/models/{self.config.gemini_model}:generateContent"

    def build_payload(self, prompt: str, schema: dict) -> dict:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": schema,
            },
        }

    async def generate_json(self, prompt: str, schema: dict) -> Any:
        """
        Send the prompt with its response schema and return the parsed JSON.
        Any transport, HTTP or parsing problem is raised as GenerationError.
        """
        payload = self.build_payload(prompt, schema)
        params = {"key": self.config.api_key}

        try:
            async with httpx.AsyncClient(
                timeout=self.config.request_timeout,
                transport=self._transport,
            ) as client:
                resp = await client.post(self.endpoint, params=params, json=payload)
        except httpx.HTTPError as e:
            raise GenerationError(f"Request failed: {e}") from e

        if resp.status_code >= 400:
            raise GenerationError(f"HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            body = resp.json()
        except ValueError as e:
            raise GenerationError("Response body is not JSON") from e

        raw = extract_candidate_text(body)
        logger.info(f"[GEMINI] Raw JSON response (first 200 chars): {raw[:200]}")

        try:
            return json.loads(cleanup_json(raw))
        except json.JSONDecodeError as e:
            raise GenerationError("Candidate text is not valid JSON") from e


# -------------------------------------------------------------------
# Retry with exponential backoff
# -------------------------------------------------------------------
def backoff_delay(failed_attempt: int, base_seconds: float = 1.0) -> float:
    """
    Delay after the n-th failed attempt (1-based): base * 2**n.
    With the defaults: 2s, 4s, 8s, 16s.
    """
    return base_seconds * (2 ** failed_attempt)


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 5,
    backoff_base_seconds: float = 1.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "GEMINI",
) -> T:
    """
    Run operation up to max_attempts times.

    No sleep follows the last attempt; when every attempt fails the last error
    is re-raised wrapped in GenerationError.
    """
    last_error: Optional[Exception] = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            logger.error(f"[{label}] Attempt {attempt}/{max_attempts} failed: {e}")

            if attempt < max_attempts:
                delay = backoff_delay(attempt, backoff_base_seconds)
                logger.info(f"[{label}] Retrying in {delay:g}s")
                await sleep(delay)

    raise GenerationError(f"All {max_attempts} attempts failed") from last_error
