"""
Analysis service - creating analysis records and recruiter-side state changes.
Used by the analysis API routes. Job dispatch happens in the routes, after commit.
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from screener.app.core.exceptions import InvalidTransitionError
from screener.app.core.logging_config import get_logger
from screener.app.models.analysis import RECRUITMENT_STATUSES, STATUS_PENDING, Analysis
from screener.app.models.resume import Resume
from screener.app.models.role import Role
from screener.app.models.user import User
from screener.app.services import analysis_state
from screener.app.services.analysis_state import AnalysisSnapshot
from screener.app.services.skill_resolver import replace_analysis_skills

logger = get_logger("services.analysis")


def _find_existing(db: Session, resume_id: int, role_id: int) -> Analysis | None:
    return (
        db.query(Analysis)
        .filter(Analysis.resume_id == resume_id, Analysis.role_id == role_id)
        .first()
    )


def create_analysis(db: Session, resume: Resume, role: Role) -> tuple[Analysis, bool]:
    """
    Pending analysis for (resume, role). Returns (analysis, created); an existing pair
    is returned as-is. Flushes but does not commit.
    """
    existing = _find_existing(db, resume.id, role.id)
    if existing:
        return existing, False
    try:
        with db.begin_nested():
            analysis = Analysis(resume_id=resume.id, role_id=role.id, status=STATUS_PENDING)
            db.add(analysis)
        return analysis, True
    except IntegrityError:
        # Concurrent dispatch for the same pair won the unique constraint
        existing = _find_existing(db, resume.id, role.id)
        if existing is None:
            raise
        logger.info("Duplicate analysis dispatch ignored resume_id=%s role_id=%s", resume.id, role.id)
        return existing, False


def start_role_analysis(db: Session, user: User, role: Role) -> list[int]:
    """
    Create pending analyses of `role` for every resume the user owns. All rows are
    created in one transaction or none are. Returns ids of newly created analyses.
    """
    resumes = (
        db.query(Resume)
        .filter(Resume.user_id == user.id)
        .order_by(Resume.id)
        .all()
    )
    created_ids: list[int] = []
    try:
        for resume in resumes:
            analysis, created = create_analysis(db, resume, role)
            if created:
                created_ids.append(analysis.id)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Batch analysis creation failed user_id=%s role_id=%s", user.id, role.id)
        raise
    logger.info(
        "Batch analysis created user_id=%s role_id=%s resumes=%d dispatched_count=%d",
        user.id, role.id, len(resumes), len(created_ids),
    )
    return created_ids


def request_reanalysis(db: Session, analysis: Analysis) -> Analysis:
    """
    Explicit re-analysis: completed/failed -> pending with results and skills cleared.
    A processing row abandoned by a dead worker is failed first, then reset.
    Raises InvalidTransitionError for pending and live processing analyses.
    """
    current = AnalysisSnapshot.from_model(analysis)
    if analysis_state.is_stale(current):
        recovered = analysis_state.recover_stale(db, current)
        if recovered is not None:
            logger.warning("Recovered abandoned processing analysis analysis_id=%s", analysis.id)
            current = recovered
    pending = analysis_state.reset(current)
    if not analysis_state.save_transition(db, current, pending):
        db.rollback()
        db.refresh(analysis)
        raise InvalidTransitionError(analysis.status, pending.status)
    replace_analysis_skills(db, analysis.id, [])
    db.commit()
    db.refresh(analysis)
    logger.info("Re-analysis requested analysis_id=%s previous_status=%s", analysis.id, current.status)
    return analysis


def update_recruitment_status(db: Session, analysis: Analysis, recruitment_status: str) -> Analysis:
    """Recruiter workflow change. Independent of the pipeline status."""
    if recruitment_status not in RECRUITMENT_STATUSES:
        raise ValueError(f"Unknown recruitment status: {recruitment_status}")
    analysis.recruitment_status = recruitment_status
    db.commit()
    db.refresh(analysis)
    return analysis


def get_user_analysis(db: Session, user: User, analysis_id: int) -> Analysis | None:
    """Analysis visible to `user` (ownership derives from the resume)."""
    return (
        db.query(Analysis)
        .join(Resume, Analysis.resume_id == Resume.id)
        .filter(Analysis.id == analysis_id, Resume.user_id == user.id)
        .first()
    )
