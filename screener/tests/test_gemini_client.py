"""Tests for the Gemini client: request shape, retry policy, response parsing"""
import json
import time

import httpx
import pytest

from screener.app.core.exceptions import (
    AiError,
    AiMissingKeyError,
    AiServiceError,
    AiTimeoutError,
    JobTimeoutError,
    MalformedResponseError,
)
from screener.app.services.gemini_client import build_analysis_prompt, parse_generate_content
from screener.tests.helpers import VALID_RESULT, gemini_envelope, make_ai_client, replay


def _analyze(client, **kwargs):
    return client.analyze("Backend Engineer", "Go, SQL", "Ownership", "Jane Doe resume text", **kwargs)


def test_request_shape_and_key_header():
    handler = replay((200, gemini_envelope(VALID_RESULT)))
    client = make_ai_client(handler)

    assert _analyze(client) == VALID_RESULT

    request = handler.calls[0]
    assert request.method == "POST"
    assert str(request.url) == "https://gemini.test/v1beta/models/gemini-test:generateContent"
    assert "key=" not in str(request.url)
    assert request.headers["x-goog-api-key"] == "test-gemini-key"
    body = json.loads(request.content)
    assert body["generationConfig"] == {"response_mime_type": "application/json", "temperature": 0.1}
    prompt = body["contents"][0]["parts"][0]["text"]
    assert "Backend Engineer" in prompt
    assert "Jane Doe resume text" in prompt
    assert "nama_kandidat" in prompt


def test_prompt_language_and_empty_culture():
    prompt = build_analysis_prompt("Data Analyst", "SQL", None, "cv", language="English")
    assert "in English" in prompt
    assert "Culture qualifications sought: ''" in prompt


def test_already_structured_part_accepted():
    handler = replay((200, gemini_envelope(VALID_RESULT, as_string=False)))
    assert _analyze(make_ai_client(handler)) == VALID_RESULT


def test_fenced_json_accepted():
    fenced = "```json\n" + json.dumps(VALID_RESULT) + "\n```"
    assert parse_generate_content(gemini_envelope(fenced, as_string=False)) == VALID_RESULT


def test_backticks_inside_values_preserved():
    result = {**VALID_RESULT, "summary": "Writes ```python``` snippets"}
    plain = parse_generate_content(gemini_envelope(result))
    assert plain["summary"] == "Writes ```python``` snippets"

    fenced = "```json\n" + json.dumps(result) + "\n```"
    assert parse_generate_content(gemini_envelope(fenced, as_string=False))["summary"] == "Writes ```python``` snippets"


@pytest.mark.parametrize(
    "envelope",
    [
        {},
        {"candidates": []},
        {"candidates": [{"content": {"parts": []}}]},
        gemini_envelope("not json {", as_string=False),
        gemini_envelope("   ", as_string=False),
        gemini_envelope("[1, 2, 3]", as_string=False),
        gemini_envelope(42, as_string=False),
        ["not", "an", "envelope"],
    ],
)
def test_malformed_responses(envelope):
    with pytest.raises(MalformedResponseError):
        parse_generate_content(envelope)


def test_non_json_body_is_malformed():
    client = make_ai_client(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(MalformedResponseError):
        _analyze(client)


def test_retries_5xx_then_succeeds():
    handler = replay((503, {"error": "overloaded"}), (503, {"error": "overloaded"}), (200, gemini_envelope(VALID_RESULT)))
    sleeps = []
    client = make_ai_client(handler, retry_backoff=1.0, sleep=sleeps.append)

    assert _analyze(client) == VALID_RESULT
    assert len(handler.calls) == 3
    assert sleeps == [1.0, 1.0]


def test_5xx_exhausts_retry_budget():
    handler = replay((500, {"error": "boom"}))
    client = make_ai_client(handler)
    with pytest.raises(AiServiceError) as exc:
        _analyze(client)
    assert len(handler.calls) == 3
    assert exc.value.status == 500
    assert "boom" in exc.value.body
    assert exc.value.retryable is True


def test_4xx_not_retried():
    handler = replay((400, {"error": "bad request"}))
    with pytest.raises(AiServiceError) as exc:
        _analyze(make_ai_client(handler))
    assert len(handler.calls) == 1
    assert exc.value.status == 400
    assert exc.value.retryable is False


@pytest.mark.parametrize("status", [401, 403])
def test_rejected_key_not_retried(status):
    handler = replay((status, {"error": "denied"}))
    with pytest.raises(AiMissingKeyError):
        _analyze(make_ai_client(handler))
    assert len(handler.calls) == 1


def test_missing_key_fails_without_request():
    handler = replay((200, gemini_envelope(VALID_RESULT)))
    with pytest.raises(AiMissingKeyError):
        _analyze(make_ai_client(handler, api_key=""))
    assert handler.calls == []


def test_timeouts_retried_then_raise():
    handler = replay(httpx.ReadTimeout("slow"))
    with pytest.raises(AiTimeoutError):
        _analyze(make_ai_client(handler))
    assert len(handler.calls) == 3


def test_timeout_then_success():
    handler = replay(httpx.ConnectTimeout("slow"), (200, gemini_envelope(VALID_RESULT)))
    assert _analyze(make_ai_client(handler)) == VALID_RESULT
    assert len(handler.calls) == 2


def test_transport_error_retried():
    handler = replay(httpx.ConnectError("refused"))
    with pytest.raises(AiError):
        _analyze(make_ai_client(handler))
    assert len(handler.calls) == 3


def test_request_timeout_has_floor():
    client = make_ai_client(replay((200, {})), timeout=5)
    assert client.timeout == 60


def test_expired_deadline_aborts_before_request():
    handler = replay((200, gemini_envelope(VALID_RESULT)))
    with pytest.raises(JobTimeoutError):
        _analyze(make_ai_client(handler), deadline=time.monotonic() - 1)
    assert handler.calls == []


def test_deadline_caps_request_timeout():
    seen = []

    def handler(request):
        seen.append(request.extensions["timeout"]["read"])
        return httpx.Response(200, json=gemini_envelope(VALID_RESULT))

    _analyze(make_ai_client(handler), deadline=time.monotonic() + 10)
    assert 0 < seen[0] <= 10


class _TricklingStream(httpx.SyncByteStream):
    """Body that arrives in slow chunks, each within any per-read timeout."""

    def __init__(self, chunks, delay):
        self.chunks = chunks
        self.delay = delay

    def __iter__(self):
        for chunk in self.chunks:
            time.sleep(self.delay)
            yield chunk


def test_deadline_bounds_slow_response_body():
    body = json.dumps(gemini_envelope(VALID_RESULT)).encode()
    chunks = [body[i:i + 16] for i in range(0, len(body), 16)]
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, stream=_TricklingStream(chunks, delay=0.3))

    with pytest.raises(JobTimeoutError):
        _analyze(make_ai_client(handler), deadline=time.monotonic() + 0.5)
    assert len(calls) == 1
