"""
Skill resolution: free-text skill names from the model -> canonical Skill rows.

Dedup key is the trimmed, whitespace-collapsed, casefolded name ("Go", "go " and
"GO" are one skill); the first spelling seen becomes the display name. The skills
table is shared by every concurrent analysis, so find-or-create relies on the
unique normalized_name and re-reads the winner's row on conflict.
Skills are enrichment: a skill that cannot be stored is logged and skipped.
"""
import re
from typing import Any, Iterable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from screener.app.core.config import settings
from screener.app.core.logging_config import get_logger
from screener.app.models.skill import Skill, analysis_skill

logger = get_logger("services.skill_resolver")

_WHITESPACE = re.compile(r"\s+")


def clean_skill_name(name: Any) -> str | None:
    """Trimmed display name, truncated to the column size. None for unusable input."""
    if not isinstance(name, str):
        return None
    cleaned = _WHITESPACE.sub(" ", name.strip())
    if not cleaned:
        return None
    return cleaned[: settings.skill_name_max_length]


def normalize_skill_name(name: str) -> str:
    return name.casefold()[: settings.skill_name_max_length]


def _find_skill(db: Session, normalized: str) -> Skill | None:
    return db.query(Skill).filter(Skill.normalized_name == normalized).first()


def find_or_create_skill(db: Session, name: str) -> Skill:
    normalized = normalize_skill_name(name)
    skill = _find_skill(db, normalized)
    if skill:
        return skill
    try:
        with db.begin_nested():
            skill = Skill(name=name, normalized_name=normalized)
            db.add(skill)
        return skill
    except IntegrityError:
        # Another analysis inserted the same skill between our read and write
        skill = _find_skill(db, normalized)
        if skill is None:
            raise
        return skill


def resolve_skills(db: Session, skill_names: Iterable[Any]) -> list[int]:
    """Skill ids for the given names, in first-seen order, without duplicates."""
    skill_ids: list[int] = []
    seen: set[str] = set()
    for raw_name in skill_names or []:
        name = clean_skill_name(raw_name)
        if name is None:
            continue
        key = normalize_skill_name(name)
        if key in seen:
            continue
        seen.add(key)
        try:
            skill = find_or_create_skill(db, name)
        except SQLAlchemyError as e:
            logger.warning("Failed to create/find skill name=%r error=%s", name, e)
            continue
        if skill.id not in skill_ids:
            skill_ids.append(skill.id)
    return skill_ids


def replace_analysis_skills(db: Session, analysis_id: int, skill_ids: list[int]) -> None:
    """Make the analysis linked to exactly `skill_ids` (sync, not append)."""
    db.execute(analysis_skill.delete().where(analysis_skill.c.analysis_id == analysis_id))
    if skill_ids:
        db.execute(
            analysis_skill.insert(),
            [{"analysis_id": analysis_id, "skill_id": skill_id} for skill_id in skill_ids],
        )
