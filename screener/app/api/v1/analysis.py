"""
Analysis endpoints - create analysis records, dispatch background jobs, read results.
Jobs are queued only after the creating transaction has committed.
"""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from screener.app.core.dependencies import get_current_user, get_db
from screener.app.core.exceptions import InvalidTransitionError
from screener.app.core.logging_config import get_logger
from screener.app.models.resume import Resume
from screener.app.models.role import Role
from screener.app.models.user import User
from screener.app.schemas.analysis import (
    AnalysisOut,
    CreateAnalysisIn,
    CreateAnalysisOut,
    RecruitmentStatusIn,
    StartAnalysisOut,
    analysis_model_to_out,
)
from screener.app.services import analysis_service
from screener.app.tasks.analyze_resume import run_analysis_job

logger = get_logger("api.analysis")
router = APIRouter()


def _get_owned_role(db: Session, user: User, role_id: int) -> Role:
    role = db.query(Role).filter(Role.id == role_id, Role.user_id == user.id).first()
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")
    return role


def _get_owned_analysis(db: Session, user: User, analysis_id: int):
    analysis = analysis_service.get_user_analysis(db, user, analysis_id)
    if not analysis:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return analysis


@router.post("/roles/{role_id}/analyses/start", response_model=StartAnalysisOut)
def start_role_analysis(
    role_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Start analysis of every resume the user owns against a role.
    Resumes already analysed for this role are skipped.
    """
    role = _get_owned_role(db, current_user, role_id)
    try:
        analysis_ids = analysis_service.start_role_analysis(db, current_user, role)
    except Exception as e:
        raise HTTPException(status_code=500, detail="Failed to start analysis") from e

    for analysis_id in analysis_ids:
        background_tasks.add_task(run_analysis_job, analysis_id)
    return StartAnalysisOut(dispatched_count=len(analysis_ids), analysis_ids=analysis_ids)


@router.post("/resumes/{resume_id}/analyses", response_model=CreateAnalysisOut)
def create_resume_analysis(
    resume_id: int,
    payload: CreateAnalysisIn,
    response: Response,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Analyse one resume against one role. An existing pair is reported, not re-dispatched."""
    resume = db.query(Resume).filter(Resume.id == resume_id, Resume.user_id == current_user.id).first()
    if not resume:
        raise HTTPException(status_code=404, detail="Resume not found")
    role = _get_owned_role(db, current_user, payload.role_id)

    analysis, created = analysis_service.create_analysis(db, resume, role)
    db.commit()
    if created:
        background_tasks.add_task(run_analysis_job, analysis.id)
        response.status_code = status.HTTP_201_CREATED
        logger.info(
            "Analysis dispatched analysis_id=%s resume_id=%s role_id=%s user_id=%s",
            analysis.id, resume.id, role.id, current_user.id,
        )
    return CreateAnalysisOut(analysis_id=analysis.id, created=created, status=analysis.status)


@router.get("/analyses/{analysis_id}", response_model=AnalysisOut)
def get_analysis(
    analysis_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Analysis with scores, justification and linked skills."""
    return analysis_model_to_out(_get_owned_analysis(db, current_user, analysis_id))


@router.post("/analyses/{analysis_id}/reanalyze", response_model=AnalysisOut, status_code=status.HTTP_202_ACCEPTED)
def reanalyze(
    analysis_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Reset a completed or failed analysis to pending and run it again."""
    analysis = _get_owned_analysis(db, current_user, analysis_id)
    try:
        analysis = analysis_service.request_reanalysis(db, analysis)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=f"Analysis is {e.current}; nothing to re-run") from e
    background_tasks.add_task(run_analysis_job, analysis.id)
    return analysis_model_to_out(analysis)


@router.patch("/analyses/{analysis_id}/recruitment-status", response_model=AnalysisOut)
def update_recruitment_status(
    analysis_id: int,
    payload: RecruitmentStatusIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Move the candidate through the recruiter workflow (new/reviewed/shortlisted/rejected)."""
    analysis = _get_owned_analysis(db, current_user, analysis_id)
    analysis = analysis_service.update_recruitment_status(db, analysis, payload.recruitment_status)
    return analysis_model_to_out(analysis)
