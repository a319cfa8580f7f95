"""
Resume text extraction for the analysis pipeline.
"""
from .pdf_utils import clean_text, extract_resume_text, extract_text_from_pdf

__all__ = [
    "clean_text",
    "extract_resume_text",
    "extract_text_from_pdf",
]
