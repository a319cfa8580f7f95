"""
Gemini client for resume analysis.
Builds the scoring prompt, calls generateContent with timeout + bounded retry,
and parses the JSON answer. Field values are not checked here (see result_validator).
"""
from __future__ import annotations

import json
import re
import time
from typing import Any, Callable

import httpx

from screener.app.core.config import (
    AI_ERROR_BODY_MAX_CHARS,
    AI_MIN_REQUEST_TIMEOUT,
    CANDIDATE_NAME_KEY,
    settings,
)
from screener.app.core.exceptions import (
    AiError,
    AiMissingKeyError,
    AiServiceError,
    AiTimeoutError,
    JobTimeoutError,
    MalformedResponseError,
)
from screener.app.core.logging_config import get_logger

logger = get_logger("services.gemini")

ANALYSIS_PROMPT = """You are a meticulous AI recruitment assistant. Based on the resume text below, analyze how well the candidate fits the position '{role_name}'.
Technical qualifications sought: '{requirement}'.
Culture qualifications sought: '{culture}'.

Respond ONLY with a valid JSON object and write every string value in the JSON in {language}. The JSON must contain these keys:
- '{name_key}' (string, the candidate's full name from the resume)
- 'technical_score' (integer 0-100, based on the technical qualifications)
- 'culture_score' (integer 0-100, based on the culture qualifications)
- 'summary' (string, a 2-3 sentence professional summary of the candidate)
- 'skills' (array of strings, the relevant skills)
- 'justification' (object with keys 'positive_points' and 'negative_points', both arrays of strings)

Resume text:

{resume_text}"""

_FENCE_OPEN = re.compile(r"^```\w*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


def build_analysis_prompt(
    role_name: str,
    requirement: str,
    culture: str | None,
    resume_text: str,
    language: str | None = None,
) -> str:
    return ANALYSIS_PROMPT.format(
        role_name=role_name,
        requirement=requirement or "",
        culture=culture or "",
        language=language or settings.analysis_language,
        name_key=CANDIDATE_NAME_KEY,
        resume_text=resume_text,
    )


def _decode_json_text(text: str) -> Any:
    content = text.strip()
    # Only an outer fence wraps the answer; backticks inside string values are content
    if content.startswith("```"):
        content = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", content, count=1), count=1)
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Invalid JSON response from Gemini API: {e}") from e


def parse_generate_content(envelope: Any) -> dict[str, Any]:
    """
    Pull the model answer out of a generateContent envelope.
    The part text is usually a JSON string; some gateways return it already decoded.
    """
    try:
        result = envelope["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedResponseError("Gemini response has no candidates[0].content.parts[0].text") from e

    if isinstance(result, str):
        if not result.strip():
            raise MalformedResponseError("Empty response from Gemini API")
        result = _decode_json_text(result)
    if not isinstance(result, dict):
        raise MalformedResponseError("Gemini API response is not a JSON object")
    return result


class GeminiClient:
    """Synchronous generateContent client. One instance can serve many jobs."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float = 120.0,
        max_retries: int = 2,
        retry_backoff: float = 1.0,
        temperature: float = 0.1,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = max(timeout, AI_MIN_REQUEST_TIMEOUT)
        self.max_retries = max(max_retries, 0)
        self.retry_backoff = retry_backoff
        self.temperature = temperature
        self._transport = transport
        self._sleep = sleep

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def analyze(
        self,
        role_name: str,
        requirement: str,
        culture: str | None,
        resume_text: str,
        deadline: float | None = None,
    ) -> dict[str, Any]:
        """
        Score a resume against a role. Returns the parsed JSON object from the model.
        `deadline` is a time.monotonic() value; no request or body read outlives it.
        """
        if not self.api_key:
            raise AiMissingKeyError("Gemini API key not configured")
        prompt = build_analysis_prompt(role_name, requirement, culture, resume_text)
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "response_mime_type": "application/json",
                "temperature": self.temperature,
            },
        }
        content = self._post_with_retry(body, deadline)
        try:
            envelope = json.loads(content)
        except ValueError as e:
            raise MalformedResponseError("Gemini response body is not JSON") from e
        return parse_generate_content(envelope)

    def _request_timeout(self, deadline: float | None) -> float:
        if deadline is None:
            return self.timeout
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise JobTimeoutError("Analysis time budget exhausted before the AI call")
        return min(self.timeout, remaining)

    def _read_body(self, response: httpx.Response, deadline: float | None) -> bytes:
        # httpx timeouts bound each read, not the whole body; a trickling server
        # is cut off here once the attempt deadline passes
        chunks = []
        for chunk in response.iter_bytes():
            chunks.append(chunk)
            if deadline is not None and time.monotonic() > deadline:
                raise JobTimeoutError("Analysis time budget exhausted while reading the AI response")
        return b"".join(chunks)

    def _post_with_retry(self, body: dict, deadline: float | None) -> bytes:
        """POST with bounded retry. Returns the raw body of the first 2xx response."""
        attempts = self.max_retries + 1
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}
        last_error: Exception | None = None

        with httpx.Client(transport=self._transport) as client:
            for attempt in range(1, attempts + 1):
                timeout = self._request_timeout(deadline)
                started = time.monotonic()
                try:
                    with client.stream("POST", self.endpoint, json=body, headers=headers, timeout=timeout) as response:
                        status_code = response.status_code
                        content = self._read_body(response, deadline)
                except httpx.TimeoutException:
                    last_error = AiTimeoutError(f"Gemini request timed out after {timeout:.0f}s")
                    logger.warning("Gemini timeout attempt=%d/%d model=%s", attempt, attempts, self.model)
                except httpx.TransportError as e:
                    last_error = AiError(f"Gemini request failed: {e}")
                    logger.warning("Gemini transport error attempt=%d/%d error=%s", attempt, attempts, e)
                else:
                    elapsed_ms = int((time.monotonic() - started) * 1000)
                    if 200 <= status_code < 300:
                        logger.info(
                            "Gemini call ok model=%s attempt=%d status=%d latency_ms=%d",
                            self.model, attempt, status_code, elapsed_ms,
                        )
                        return content
                    error_body = content.decode("utf-8", errors="replace")[:AI_ERROR_BODY_MAX_CHARS]
                    if status_code in (401, 403):
                        raise AiMissingKeyError(f"Gemini API rejected the key [{status_code}]")
                    last_error = AiServiceError(status_code, error_body)
                    if status_code < 500:
                        raise last_error
                    logger.warning(
                        "Gemini server error attempt=%d/%d status=%d latency_ms=%d",
                        attempt, attempts, status_code, elapsed_ms,
                    )

                if attempt < attempts:
                    self._sleep(self.retry_backoff)

        raise last_error


def get_ai_client() -> GeminiClient:
    """Client configured from settings."""
    return GeminiClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        timeout=settings.ai_request_timeout,
        max_retries=settings.ai_max_retries,
        retry_backoff=settings.ai_retry_backoff,
        temperature=settings.ai_temperature,
    )
