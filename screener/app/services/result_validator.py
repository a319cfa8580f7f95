"""
Validation of the model's JSON answer before anything is persisted.

Required keys and score ranges are enforced strictly (the model broke its contract,
the attempt fails). Encoding problems never fail: strings are repaired in place.
"""
from typing import Any

from screener.app.core.config import CANDIDATE_NAME_KEY, SCORE_MAX, SCORE_MIN
from screener.app.core.exceptions import (
    InvalidFieldTypeError,
    MissingFieldError,
    ScoreOutOfRangeError,
)
from screener.app.schemas.analysis import AnalysisResult, Justification
from screener.app.utils.encoding import sanitize_utf8

REQUIRED_KEYS = (CANDIDATE_NAME_KEY, "technical_score", "culture_score", "summary", "skills", "justification")
SCORE_FIELDS = ("technical_score", "culture_score")


def _check_score(field: str, value: Any) -> int:
    # bool is an int subclass; True must not pass as a score of 1
    if isinstance(value, bool) or not isinstance(value, int) or not SCORE_MIN <= value <= SCORE_MAX:
        raise ScoreOutOfRangeError(field, value)
    return value


def _points(justification: dict, key: str) -> list[str]:
    points = justification.get(key, [])
    if points is None:
        return []
    if not isinstance(points, list):
        raise InvalidFieldTypeError(f"justification.{key}", "list of strings")
    return [p if isinstance(p, str) else str(p) for p in points]


def validate_analysis_result(raw: dict[str, Any]) -> AnalysisResult:
    """
    Check a parsed model answer and return the typed result.

    Raises MissingFieldError, ScoreOutOfRangeError or InvalidFieldTypeError.
    The returned `raw` is the full payload after UTF-8 repair.
    """
    if not isinstance(raw, dict):
        raise InvalidFieldTypeError("response", "JSON object")

    sanitized = sanitize_utf8(raw)

    for key in REQUIRED_KEYS:
        if key not in sanitized:
            raise MissingFieldError(key)

    scores = {field: _check_score(field, sanitized[field]) for field in SCORE_FIELDS}

    name = sanitized[CANDIDATE_NAME_KEY]
    if not isinstance(name, str):
        raise InvalidFieldTypeError(CANDIDATE_NAME_KEY, "string")
    summary = sanitized["summary"]
    if not isinstance(summary, str):
        raise InvalidFieldTypeError("summary", "string")
    skills = sanitized["skills"]
    if not isinstance(skills, list):
        raise InvalidFieldTypeError("skills", "list of strings")
    justification = sanitized["justification"]
    if not isinstance(justification, dict):
        raise InvalidFieldTypeError("justification", "object with positive_points and negative_points")

    return AnalysisResult(
        candidate_name=name,
        technical_score=scores["technical_score"],
        culture_score=scores["culture_score"],
        summary=summary,
        skills=skills,
        justification=Justification(
            positive_points=_points(justification, "positive_points"),
            negative_points=_points(justification, "negative_points"),
        ),
        raw=sanitized,
    )
