"""
Background analysis of one resume against one role.

AnalyzeResumeJob drives a single attempt: pending -> processing -> completed/failed.
run_analysis_job is the runner: it owns sessions, the per-attempt deadline and the
bounded retry across attempts. Dispatched from the API via BackgroundTasks:

    background_tasks.add_task(run_analysis_job, analysis.id)
"""
import time
from typing import Callable

from sqlalchemy.orm import Session

from screener.app.core.config import settings
from screener.app.core.exceptions import (
    AnalysisError,
    AnalysisNotFoundError,
    JobTimeoutError,
    MissingRelationError,
    StaleAnalysisError,
)
from screener.app.core.logging_config import get_logger
from screener.app.db.session import SessionLocal
from screener.app.models.analysis import STATUS_COMPLETED, STATUS_PROCESSING, Analysis
from screener.app.services import analysis_state
from screener.app.services.analysis_state import AnalysisSnapshot
from screener.app.services.gemini_client import GeminiClient, get_ai_client
from screener.app.services.resume_extractor import extract_resume_text
from screener.app.services.result_validator import validate_analysis_result
from screener.app.services.skill_resolver import replace_analysis_skills, resolve_skills
from screener.app.services.storage import resolve_storage_path

logger = get_logger("tasks.analyze_resume")


class AnalyzeResumeJob:
    """One attempt of the analysis pipeline for a single Analysis row."""

    # Attempt budget and per-attempt wall clock, read by the runner
    tries: int = settings.analysis_job_tries
    timeout: float = settings.analysis_job_timeout

    def __init__(self, db: Session, analysis_id: int, ai_client: GeminiClient | None = None):
        self.db = db
        self.analysis_id = analysis_id
        self.ai_client = ai_client or get_ai_client()

    def handle(self, deadline: float | None = None) -> AnalysisSnapshot:
        """
        Run the pipeline. Returns the final snapshot; raises the triggering
        AnalysisError (after marking the row failed) so the runner can retry.
        """
        analysis = self.db.get(Analysis, self.analysis_id)
        if analysis is None:
            raise AnalysisNotFoundError(f"Analysis [ID: {self.analysis_id}] does not exist")

        current = AnalysisSnapshot.from_model(analysis)
        if current.status == STATUS_COMPLETED:
            logger.info("Analysis already completed, skipping analysis_id=%s", current.id)
            return current
        if current.status == STATUS_PROCESSING:
            if not analysis_state.is_stale(current):
                logger.info("Analysis already processing elsewhere, skipping analysis_id=%s", current.id)
                return current
            recovered = analysis_state.recover_stale(self.db, current)
            if recovered is None:
                self.db.rollback()
                logger.info("Stale analysis taken over by another worker, skipping analysis_id=%s", current.id)
                return AnalysisSnapshot.from_model(self.db.get(Analysis, self.analysis_id))
            self.db.commit()
            logger.warning(
                "Recovered abandoned processing analysis analysis_id=%s last_update=%s",
                current.id, current.updated_at,
            )
            current = recovered

        processing = analysis_state.start_processing(current)
        if not analysis_state.save_transition(self.db, current, processing):
            self.db.rollback()
            logger.info("Analysis claimed by another worker, skipping analysis_id=%s", current.id)
            return AnalysisSnapshot.from_model(self.db.get(Analysis, self.analysis_id))
        self.db.commit()
        logger.info(
            "Analysis started analysis_id=%s resume_id=%s role_id=%s",
            processing.id, processing.resume_id, processing.role_id,
        )

        try:
            completed = self._run(processing, deadline)
        except Exception as e:
            self.db.rollback()
            self._mark_failed(processing, e)
            raise

        logger.info(
            "Analysis completed analysis_id=%s resume_id=%s role_id=%s technical_score=%s culture_score=%s",
            completed.id, completed.resume_id, completed.role_id,
            completed.technical_score, completed.culture_score,
        )
        return completed

    def _run(self, processing: AnalysisSnapshot, deadline: float | None) -> AnalysisSnapshot:
        analysis = self.db.get(Analysis, self.analysis_id)
        resume = analysis.resume if analysis else None
        role = analysis.role if analysis else None
        if resume is None or role is None:
            raise MissingRelationError(
                f"Analysis record [ID: {self.analysis_id}] is missing resume or role relation"
            )

        file_path = resolve_storage_path(resume.storage_path)
        text = extract_resume_text(file_path, deadline=deadline)
        _check_deadline(deadline, "text extraction")

        raw = self.ai_client.analyze(role.name, role.requirement, role.culture, text, deadline=deadline)
        result = validate_analysis_result(raw)
        _check_deadline(deadline, "AI analysis")

        completed = analysis_state.complete(processing, result)
        if not analysis_state.save_transition(self.db, processing, completed):
            raise StaleAnalysisError(f"Analysis [ID: {self.analysis_id}] changed while processing")
        skill_ids = resolve_skills(self.db, result.skills)
        replace_analysis_skills(self.db, self.analysis_id, skill_ids)
        self.db.commit()
        return completed

    def _mark_failed(self, processing: AnalysisSnapshot, error: Exception) -> None:
        logger.error(
            "Analysis failed analysis_id=%s resume_id=%s role_id=%s error_code=%s error=%s",
            processing.id, processing.resume_id, processing.role_id,
            getattr(error, "code", type(error).__name__), error,
        )
        if isinstance(error, StaleAnalysisError):
            # The other writer owns the row now
            return
        failed = analysis_state.fail(processing)
        if analysis_state.save_transition(self.db, processing, failed):
            self.db.commit()
        else:
            self.db.rollback()
            logger.warning("Could not mark analysis failed, status changed analysis_id=%s", processing.id)


def _check_deadline(deadline: float | None, stage: str) -> None:
    if deadline is not None and time.monotonic() > deadline:
        raise JobTimeoutError(f"Analysis time budget exhausted after {stage}")


def run_analysis_job(
    analysis_id: int,
    session_factory: Callable[[], Session] = SessionLocal,
    ai_client: GeminiClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """
    Run an analysis with the job's attempt budget. Each attempt starts from scratch
    in a fresh session. Returns {analysis_id, status, attempts}.
    """
    client = ai_client or get_ai_client()
    tries = max(AnalyzeResumeJob.tries, 1)
    status = None
    attempt = 0
    for attempt in range(1, tries + 1):
        db = session_factory()
        try:
            job = AnalyzeResumeJob(db, analysis_id, ai_client=client)
            snapshot = job.handle(deadline=time.monotonic() + job.timeout)
            return {"analysis_id": analysis_id, "status": snapshot.status, "attempts": attempt}
        except AnalysisError as e:
            status = _current_status(db, analysis_id)
            if not e.retryable:
                logger.error(
                    "Analysis permanently failed analysis_id=%s attempt=%d error_code=%s (not retryable)",
                    analysis_id, attempt, e.code,
                )
                break
        except Exception:
            logger.exception("Unexpected error in analysis job analysis_id=%s attempt=%d", analysis_id, attempt)
            status = _current_status(db, analysis_id)
        finally:
            db.close()

        if attempt < tries:
            logger.warning(
                "Analysis retry scheduled analysis_id=%s attempt=%d/%d backoff_s=%s",
                analysis_id, attempt, tries, settings.analysis_job_backoff,
            )
            sleep(settings.analysis_job_backoff)
        else:
            logger.error("Analysis permanently failed analysis_id=%s attempts=%d", analysis_id, attempt)

    return {"analysis_id": analysis_id, "status": status, "attempts": attempt}


def _current_status(db: Session, analysis_id: int) -> str | None:
    db.rollback()
    analysis = db.get(Analysis, analysis_id)
    return analysis.status if analysis else None
