"""
UTF-8 repair for text coming out of PDFs and model responses.

Python strings can still hold lone surrogates (from json.loads of "\\ud800", or
surrogateescape'd bytes) which fail on .encode("utf-8") and break JSON columns.
Each bad code point or byte becomes U+FFFD; well-formed text is returned unchanged.
"""
import math
import re
from typing import Any

REPLACEMENT_CHAR = "\ufffd"

_SURROGATES = re.compile("[\ud800-\udfff]")


def sanitize_string(value: str | bytes) -> str:
    """Return valid UTF-8 text; invalid sequences become U+FFFD. Idempotent."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return _SURROGATES.sub(REPLACEMENT_CHAR, value)


def sanitize_utf8(data: Any) -> Any:
    """
    Recursively repair every string (dict keys included) in a JSON-like structure.
    Never raises: values that JSON cannot carry are degraded, not rejected.
    """
    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            clean_key = sanitize_string(key) if isinstance(key, (str, bytes)) else sanitize_string(str(key))
            sanitized[clean_key] = sanitize_utf8(value)
        return sanitized
    if isinstance(data, (list, tuple)):
        return [sanitize_utf8(item) for item in data]
    if isinstance(data, (str, bytes, bytearray)):
        return sanitize_string(data)
    if data is None or isinstance(data, (bool, int)):
        return data
    if isinstance(data, float):
        return data if math.isfinite(data) else None
    return sanitize_string(str(data))
