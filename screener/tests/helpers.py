"""
Shared test data and builders: model answers, PDFs, a Gemini client on a mock transport.
"""
import json
from io import BytesIO

import httpx
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from screener.app.services.gemini_client import GeminiClient

VALID_RESULT = {
    "nama_kandidat": "Jane Doe",
    "technical_score": 85,
    "culture_score": 70,
    "summary": "Backend engineer with six years of Go and PostgreSQL experience.",
    "skills": ["Go", "SQL"],
    "justification": {"positive_points": ["strong backend"], "negative_points": []},
}

RESUME_LINES = [
    "Jane Doe",
    "Senior Backend Engineer",
    "Experience: 6 years building Go services on PostgreSQL.",
    "Skills: Go, SQL, Docker, Kubernetes",
]


def make_pdf_bytes(lines: list[str]) -> bytes:
    """Single-page PDF; empty `lines` gives a page with no text."""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=letter)
    y = 720
    for line in lines:
        c.drawString(72, y, line)
        y -= 14
    c.showPage()
    c.save()
    return buffer.getvalue()


def gemini_envelope(result, as_string: bool = True) -> dict:
    text = json.dumps(result) if as_string else result
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def replay(*items):
    """
    Mock transport handler returning `items` in order, repeating the last one.
    Each item is (status, json_body) or an exception instance to raise.
    Requests are recorded on handler.calls.
    """
    queue = list(items)
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        status, body = item
        return httpx.Response(status, json=body)

    handler.calls = calls
    return handler


def make_ai_client(handler, **overrides) -> GeminiClient:
    """GeminiClient whose HTTP calls go to `handler(request) -> httpx.Response`."""
    options = dict(
        api_key="test-gemini-key",
        model="gemini-test",
        base_url="https://gemini.test/v1beta",
        timeout=90,
        max_retries=2,
        retry_backoff=0,
        transport=httpx.MockTransport(handler),
        sleep=lambda seconds: None,
    )
    options.update(overrides)
    return GeminiClient(**options)
