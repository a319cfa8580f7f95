"""
Analysis status state machine.

Transitions are pure functions over a frozen AnalysisSnapshot; `save_transition`
is the only writer and does a compare-and-swap on the current status, so two
workers racing on one row cannot overwrite each other's terminal state.

    pending    -> processing
    processing -> completed | failed
    failed     -> processing          (job runner retry)
    completed  -> pending             (explicit re-analysis)
    failed     -> pending             (explicit re-analysis)

A `processing` row untouched for longer than the attempt budget belongs to a
worker that died (process kill, redeploy). `recover_stale` fails it with a CAS on
(status, updated_at) so a live retry or re-analysis can take over.
"""
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from screener.app.core.config import PROCESSING_STALE_GRACE_SECONDS, settings
from screener.app.core.exceptions import InvalidTransitionError
from screener.app.models.analysis import (
    RESULT_FIELDS,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    Analysis,
)
from screener.app.schemas.analysis import AnalysisResult

TRANSITIONS: dict[str, frozenset[str]] = {
    STATUS_PENDING: frozenset({STATUS_PROCESSING}),
    STATUS_PROCESSING: frozenset({STATUS_COMPLETED, STATUS_FAILED}),
    STATUS_FAILED: frozenset({STATUS_PROCESSING, STATUS_PENDING}),
    STATUS_COMPLETED: frozenset({STATUS_PENDING}),
}


@dataclass(frozen=True)
class AnalysisSnapshot:
    id: int
    resume_id: int
    role_id: int
    status: str
    technical_score: int | None = None
    culture_score: int | None = None
    summary: str | None = None
    justification: dict[str, Any] | None = None
    raw_result: dict[str, Any] | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, analysis: Analysis) -> "AnalysisSnapshot":
        return cls(
            id=analysis.id,
            resume_id=analysis.resume_id,
            role_id=analysis.role_id,
            status=analysis.status,
            technical_score=analysis.technical_score,
            culture_score=analysis.culture_score,
            summary=analysis.summary,
            justification=analysis.justification,
            raw_result=analysis.raw_result,
            updated_at=analysis.updated_at,
        )

    def result_values(self) -> dict[str, Any]:
        return {field: getattr(self, field) for field in RESULT_FIELDS}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def _move(snapshot: AnalysisSnapshot, target: str, **values: Any) -> AnalysisSnapshot:
    if not can_transition(snapshot.status, target):
        raise InvalidTransitionError(snapshot.status, target)
    cleared = {field: None for field in RESULT_FIELDS}
    cleared.update(values)
    return replace(snapshot, status=target, **cleared)


def start_processing(snapshot: AnalysisSnapshot) -> AnalysisSnapshot:
    return _move(snapshot, STATUS_PROCESSING)


def complete(snapshot: AnalysisSnapshot, result: AnalysisResult) -> AnalysisSnapshot:
    return _move(
        snapshot,
        STATUS_COMPLETED,
        technical_score=result.technical_score,
        culture_score=result.culture_score,
        summary=result.summary,
        justification=result.justification.model_dump(),
        raw_result=result.raw,
    )


def fail(snapshot: AnalysisSnapshot) -> AnalysisSnapshot:
    return _move(snapshot, STATUS_FAILED)


def reset(snapshot: AnalysisSnapshot) -> AnalysisSnapshot:
    return _move(snapshot, STATUS_PENDING)


def is_stale(snapshot: AnalysisSnapshot, now: datetime | None = None) -> bool:
    """True for a `processing` row no live attempt could still own."""
    if snapshot.status != STATUS_PROCESSING or snapshot.updated_at is None:
        return False
    budget = timedelta(seconds=settings.analysis_job_timeout + PROCESSING_STALE_GRACE_SECONDS)
    return (now or datetime.utcnow()) - snapshot.updated_at > budget


def save_transition(
    db: Session,
    before: AnalysisSnapshot,
    after: AnalysisSnapshot,
    match_updated_at: bool = False,
) -> bool:
    """
    Persist `after` only if the row still has `before.status` (and, with
    `match_updated_at`, `before.updated_at`). Returns False when another writer
    got there first. Does not commit.
    """
    values = {"status": after.status, "updated_at": datetime.utcnow(), **after.result_values()}
    query = db.query(Analysis).filter(Analysis.id == before.id, Analysis.status == before.status)
    if match_updated_at:
        query = query.filter(Analysis.updated_at == before.updated_at)
    updated = query.update(values, synchronize_session=False)
    return updated == 1


def recover_stale(db: Session, snapshot: AnalysisSnapshot) -> AnalysisSnapshot | None:
    """
    Fail an abandoned `processing` row. Returns the failed snapshot, or None if
    the row is not stale or changed since it was read. Does not commit.
    """
    if not is_stale(snapshot):
        return None
    failed = fail(snapshot)
    if not save_transition(db, snapshot, failed, match_updated_at=True):
        return None
    return failed
