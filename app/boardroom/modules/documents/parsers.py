"""PDF helpers for uploaded board documents."""
from __future__ import annotations

import logging
from io import BytesIO

import pdfplumber
from pypdf import PdfReader

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
MAX_EXTRACTED_CHARS = 200_000


def is_pdf(content_type: str | None, data: bytes) -> bool:
    return (content_type or "").lower() == PDF_CONTENT_TYPE or data[:5] == b"%PDF-"


def pdf_page_count(pdf_bytes: bytes) -> int | None:
    try:
        return len(PdfReader(BytesIO(pdf_bytes)).pages)
    except Exception as e:
        logger.warning("PDF page count failed: %s", e)
        return None


def extract_pdf_text(pdf_bytes: bytes) -> str:
    """Plain text of every page, joined by newlines; empty when the PDF cannot be read."""
    text = []
    try:
        with pdfplumber.open(BytesIO(pdf_bytes)) as pdf:
            for page in pdf.pages:
                text.append(page.extract_text() or "")
    except Exception as e:
        logger.warning("PDF text extraction failed: %s", e)
        return ""
    return "\n".join(text)[:MAX_EXTRACTED_CHARS]


def inspect_upload(content_type: str | None, data: bytes) -> tuple[int | None, str | None]:
    """(page_count, extracted_text) for PDFs, (None, None) for anything else."""
    if not is_pdf(content_type, data):
        return None, None
    page_count = pdf_page_count(data)
    text = extract_pdf_text(data)
    logger.debug("inspected PDF upload: pages=%s text_chars=%s", page_count, len(text))
    return page_count, text or None
