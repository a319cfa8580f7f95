"""
Skill - canonical skill tag shared by all users, linked to analyses many-to-many.
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Table

from screener.app.db.base import Base

analysis_skill = Table(
    "analysis_skill",
    Base.metadata,
    Column("analysis_id", Integer, ForeignKey("analyses.id", ondelete="CASCADE"), primary_key=True),
    Column("skill_id", Integer, ForeignKey("skills.id", ondelete="CASCADE"), primary_key=True),
)


class Skill(Base):
    __tablename__ = "skills"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)  # first-seen spelling, e.g. "PostgreSQL"
    normalized_name = Column(String(255), nullable=False, unique=True, index=True)  # dedup key

    created_at = Column(DateTime, default=datetime.utcnow)
