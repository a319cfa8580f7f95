"""
PDF utilities for resume analysis - plain text extraction and cleanup.
"""
import re
import time
from pathlib import Path

import pdfplumber

from screener.app.core.exceptions import EmptyDocumentError, JobTimeoutError, PdfParseError, ResumeFileNotFoundError
from screener.app.utils.encoding import sanitize_string

_TRAILING_SPACE = re.compile(r"[ \t]+\n")
_EXTRA_BLANK_LINES = re.compile(r"\n{3,}")


def clean_text(raw: str) -> str:
    """Valid UTF-8, unix newlines, no NULs, at most one blank line in a row."""
    text = sanitize_string(raw).replace("\x00", "")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _TRAILING_SPACE.sub("\n", text)
    text = _EXTRA_BLANK_LINES.sub("\n\n", text)
    return text.strip()


def extract_text_from_pdf(file_path: str | Path, deadline: float | None = None) -> str:
    """Extract raw text from PDF using pdfplumber. Stops between pages once `deadline` (monotonic) passes."""
    text_parts = []
    with pdfplumber.open(file_path) as pdf:
        for page in pdf.pages:
            page_text = page.extract_text()
            if page_text:
                text_parts.append(page_text)
            if deadline is not None and time.monotonic() > deadline:
                raise JobTimeoutError(f"Analysis time budget exhausted during text extraction (page {page.page_number})")
    return "\n".join(text_parts)


def extract_resume_text(file_path: str | Path, deadline: float | None = None) -> str:
    """
    Cleaned plain text of a resume PDF.

    Raises ResumeFileNotFoundError if the file is gone, PdfParseError if pdfplumber
    cannot read it, EmptyDocumentError if no text remains after trimming,
    JobTimeoutError if `deadline` passes mid-document.
    """
    path = Path(file_path)
    if not path.is_file():
        raise ResumeFileNotFoundError(f"Resume file not found at path: {path}")
    try:
        raw_text = extract_text_from_pdf(path, deadline)
    except JobTimeoutError:
        raise
    except Exception as e:
        raise PdfParseError(f"Failed to parse PDF file: {e}") from e

    text = clean_text(raw_text)
    if not text:
        raise EmptyDocumentError("PDF file appears to be empty or unreadable")
    return text
