"""Tests for resume text extraction and storage lookup"""
import time

import pytest

from screener.app.core.exceptions import EmptyDocumentError, JobTimeoutError, PdfParseError, ResumeFileNotFoundError
from screener.app.services.resume_extractor import clean_text, extract_resume_text
from screener.app.services.storage import resolve_storage_path
from screener.tests.helpers import RESUME_LINES, make_pdf_bytes


def test_extracts_text_from_pdf(tmp_path):
    pdf = tmp_path / "cv.pdf"
    pdf.write_bytes(make_pdf_bytes(RESUME_LINES))
    text = extract_resume_text(pdf)
    assert "Jane Doe" in text
    assert "Skills: Go, SQL" in text
    assert text == text.strip()


def test_missing_file_is_not_found(tmp_path):
    with pytest.raises(ResumeFileNotFoundError):
        extract_resume_text(tmp_path / "nope.pdf")


def test_blank_pdf_is_empty_document(tmp_path):
    pdf = tmp_path / "blank.pdf"
    pdf.write_bytes(make_pdf_bytes([]))
    with pytest.raises(EmptyDocumentError):
        extract_resume_text(pdf)


def test_extraction_stops_at_deadline(tmp_path):
    pdf = tmp_path / "cv.pdf"
    pdf.write_bytes(make_pdf_bytes(RESUME_LINES))
    with pytest.raises(JobTimeoutError):
        extract_resume_text(pdf, deadline=time.monotonic() - 1)
    assert "Jane Doe" in extract_resume_text(pdf, deadline=time.monotonic() + 60)


def test_corrupt_pdf_is_parse_failure(tmp_path):
    pdf = tmp_path / "corrupt.pdf"
    pdf.write_bytes(b"this is not a pdf at all \x00\xff\xfe")
    with pytest.raises(PdfParseError):
        extract_resume_text(pdf)


def test_clean_text_normalizes_whitespace():
    raw = "  Jane Doe\r\n\r\n\r\n\r\nGo   \t\nSQL\x00  "
    assert clean_text(raw) == "Jane Doe\n\nGo\nSQL"


def test_clean_text_repairs_invalid_utf8():
    raw = "Jane \udcff Doe"
    assert clean_text(raw) == "Jane � Doe"


def test_resolve_storage_path(upload_dir):
    target = upload_dir / "resumes" / "a.pdf"
    target.write_bytes(b"%PDF")
    assert resolve_storage_path("resumes/a.pdf") == target.resolve()
    assert resolve_storage_path("/resumes/a.pdf") == target.resolve()


@pytest.mark.parametrize("ref", ["", "   ", None, "resumes/missing.pdf", "../outside.pdf", "resumes"])
def test_resolve_storage_path_rejects(upload_dir, ref):
    (upload_dir.parent / "outside.pdf").write_bytes(b"%PDF")
    with pytest.raises(ResumeFileNotFoundError):
        resolve_storage_path(ref)
