"""
Error taxonomy for the resume analysis pipeline.

Every pipeline failure derives from AnalysisError. `code` is a stable short
identifier for logs and API responses; `retryable` tells the job runner whether
a fresh attempt can change the outcome.
"""
from typing import Any


class AnalysisError(RuntimeError):
    code = "analysis_error"
    retryable = True

    def __init__(self, message: str, *, code: str | None = None, retryable: bool | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable


# --- Orchestration / data errors ---

class AnalysisNotFoundError(AnalysisError):
    code = "analysis_not_found"
    retryable = False


class MissingRelationError(AnalysisError):
    code = "missing_relation"
    retryable = False


class InvalidTransitionError(AnalysisError):
    code = "invalid_transition"
    retryable = False

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move analysis from '{current}' to '{target}'")
        self.current = current
        self.target = target


class StaleAnalysisError(AnalysisError):
    """Conditional status write matched no row: another writer changed the analysis."""
    code = "stale_analysis"
    retryable = False


class JobTimeoutError(AnalysisError):
    code = "job_timeout"


# --- Text extraction ---

class ExtractionError(AnalysisError):
    code = "extraction_failed"
    retryable = False


class ResumeFileNotFoundError(ExtractionError):
    code = "file_not_found"


class EmptyDocumentError(ExtractionError):
    code = "empty_document"


class PdfParseError(ExtractionError):
    code = "parse_failure"


# --- AI service ---

class AiError(AnalysisError):
    code = "ai_error"


class AiMissingKeyError(AiError):
    """No API key configured, or the endpoint rejected the key (401/403)."""
    code = "ai_unauthenticated"
    retryable = False


class AiTimeoutError(AiError):
    code = "ai_timeout"


class AiServiceError(AiError):
    code = "ai_service_error"

    def __init__(self, status: int, body: str):
        super().__init__(f"Gemini API error [{status}]: {body}", retryable=status >= 500)
        self.status = status
        self.body = body


class MalformedResponseError(AiError):
    code = "ai_malformed_response"


# --- Result validation ---

class ResultValidationError(AnalysisError):
    code = "validation_failed"


class MissingFieldError(ResultValidationError):
    code = "missing_field"

    def __init__(self, key: str):
        super().__init__(f"Missing required key '{key}' in AI response")
        self.key = key


class ScoreOutOfRangeError(ResultValidationError):
    code = "score_out_of_range"

    def __init__(self, field: str, value: Any):
        super().__init__(f"Invalid {field}: {value!r} is not an integer between 0-100")
        self.field = field
        self.value = value


class InvalidFieldTypeError(ResultValidationError):
    code = "invalid_field_type"

    def __init__(self, field: str, expected: str):
        super().__init__(f"Invalid {field}: expected {expected}")
        self.field = field
        self.expected = expected
