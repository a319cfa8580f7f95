"""
Storage lookup - maps a resume's stored reference to a readable file on local disk.
Uploads are written under settings.upload_dir by the upload service.
"""
from pathlib import Path

from screener.app.core.config import settings
from screener.app.core.exceptions import ResumeFileNotFoundError


def storage_root() -> Path:
    base = Path(settings.upload_dir)
    if not base.is_absolute():
        base = Path.cwd() / base
    return base.resolve()


def resolve_storage_path(storage_path: str | None) -> Path:
    """Absolute path for a stored resume. Raises ResumeFileNotFoundError when unusable."""
    if not storage_path or not storage_path.strip():
        raise ResumeFileNotFoundError("Resume storage path is empty")
    root = storage_root()
    # Stored references are relative ("resumes/<uuid>.pdf"); tolerate a leading slash
    file_path = (root / storage_path.strip().lstrip("/")).resolve()
    if root not in file_path.parents:
        raise ResumeFileNotFoundError(f"Resume storage path escapes storage root: {storage_path}")
    if not file_path.is_file():
        raise ResumeFileNotFoundError(f"Resume file not found at path: {file_path}")
    return file_path
