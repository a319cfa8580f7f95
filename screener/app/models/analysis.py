"""
Analysis - one resume evaluated against one role. Status and result fields are written
only by the analysis job; recruitment_status only by recruiter actions.
"""
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from screener.app.db.base import Base
from screener.app.models.skill import analysis_skill

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUSES = (STATUS_PENDING, STATUS_PROCESSING, STATUS_COMPLETED, STATUS_FAILED)

RECRUITMENT_STATUS_NEW = "new"
RECRUITMENT_STATUS_REVIEWED = "reviewed"
RECRUITMENT_STATUS_SHORTLISTED = "shortlisted"
RECRUITMENT_STATUS_REJECTED = "rejected"
RECRUITMENT_STATUSES = (
    RECRUITMENT_STATUS_NEW,
    RECRUITMENT_STATUS_REVIEWED,
    RECRUITMENT_STATUS_SHORTLISTED,
    RECRUITMENT_STATUS_REJECTED,
)

# Written together on completion, cleared together otherwise
RESULT_FIELDS = ("technical_score", "culture_score", "summary", "justification", "raw_result")


class Analysis(Base):
    __tablename__ = "analyses"

    id = Column(Integer, primary_key=True, index=True)
    resume_id = Column(Integer, ForeignKey("resumes.id", ondelete="CASCADE"), nullable=False, index=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(String(20), nullable=False, default=STATUS_PENDING, index=True)
    recruitment_status = Column(String(20), nullable=False, default=RECRUITMENT_STATUS_NEW)

    technical_score = Column(Integer, nullable=True)
    culture_score = Column(Integer, nullable=True)
    summary = Column(Text, nullable=True)
    justification = Column(JSON(none_as_null=True), nullable=True)  # {"positive_points": [...], "negative_points": [...]}
    raw_result = Column(JSON(none_as_null=True), nullable=True)  # full sanitized model answer, for audit

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    resume = relationship("Resume", back_populates="analyses")
    role = relationship("Role", back_populates="analyses")
    skills = relationship("Skill", secondary=analysis_skill, order_by="Skill.id")

    __table_args__ = (UniqueConstraint("resume_id", "role_id", name="uq_analysis_resume_role"),)
