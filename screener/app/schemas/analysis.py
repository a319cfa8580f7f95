"""
Analysis Pydantic schemas - validated AI result and API payloads
"""
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from screener.app.core.config import CANDIDATE_NAME_KEY, UNKNOWN_CANDIDATE


# --- Validated AI result ---
class Justification(BaseModel):
    positive_points: List[str] = Field(default_factory=list)
    negative_points: List[str] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """Typed view of a validated model answer. `raw` keeps the full sanitized payload."""
    model_config = ConfigDict(frozen=True)

    candidate_name: str
    technical_score: int
    culture_score: int
    summary: str
    skills: List[Any] = Field(default_factory=list)
    justification: Justification = Field(default_factory=Justification)
    raw: dict[str, Any] = Field(default_factory=dict)


# --- Requests ---
class CreateAnalysisIn(BaseModel):
    role_id: int


class RecruitmentStatusIn(BaseModel):
    recruitment_status: Literal["new", "reviewed", "shortlisted", "rejected"]


# --- Responses ---
class SkillOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class RoleSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class ResumeSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    original_filename: str


class AnalysisOut(BaseModel):
    id: int
    resume_id: int
    role_id: int
    status: str
    recruitment_status: str
    technical_score: Optional[int] = None
    culture_score: Optional[int] = None
    overall_score: Optional[float] = None
    candidate_name: str = UNKNOWN_CANDIDATE
    summary: Optional[str] = None
    justification: Optional[Justification] = None
    skills: List[SkillOut] = Field(default_factory=list)
    role: Optional[RoleSummaryOut] = None
    resume: Optional[ResumeSummaryOut] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CreateAnalysisOut(BaseModel):
    analysis_id: int
    created: bool
    status: str


class StartAnalysisOut(BaseModel):
    dispatched_count: int
    analysis_ids: List[int] = Field(default_factory=list)


def overall_score(technical_score: int | None, culture_score: int | None) -> float | None:
    """Mean of both scores, one decimal. None unless both are set."""
    if technical_score is None or culture_score is None:
        return None
    return round((technical_score + culture_score) / 2, 1)


def analysis_model_to_out(analysis) -> AnalysisOut:
    """Convert Analysis ORM row (with resume, role, skills loaded lazily) to AnalysisOut."""
    raw = analysis.raw_result if isinstance(analysis.raw_result, dict) else {}
    name = raw.get(CANDIDATE_NAME_KEY)
    justification = analysis.justification if isinstance(analysis.justification, dict) else None
    return AnalysisOut(
        id=analysis.id,
        resume_id=analysis.resume_id,
        role_id=analysis.role_id,
        status=analysis.status,
        recruitment_status=analysis.recruitment_status,
        technical_score=analysis.technical_score,
        culture_score=analysis.culture_score,
        overall_score=overall_score(analysis.technical_score, analysis.culture_score),
        candidate_name=name if isinstance(name, str) and name.strip() else UNKNOWN_CANDIDATE,
        summary=analysis.summary,
        justification=Justification(**justification) if justification is not None else None,
        skills=[SkillOut.model_validate(s) for s in analysis.skills],
        role=RoleSummaryOut.model_validate(analysis.role) if analysis.role else None,
        resume=ResumeSummaryOut.model_validate(analysis.resume) if analysis.resume else None,
        created_at=analysis.created_at,
        updated_at=analysis.updated_at,
    )
