"""Resume file -> plain text (PDF via pdfplumber, DOCX via python-docx)."""
import logging
import os
from io import BytesIO
from typing import Optional

import pdfplumber
from docx import Document

from .errors import ExtractionFailed, UnsupportedInputFormat

logger = logging.getLogger(__name__)

PDF_TYPES = {"application/pdf"}
DOCX_TYPES = {"application/vnd.openxmlformats-officedocument.wordprocessingml.document"}


def detect_format(filename: str, content_type: Optional[str] = None) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    if content_type in PDF_TYPES or ext == ".pdf":
        return "pdf"
    if content_type in DOCX_TYPES or ext == ".docx":
        return "docx"
    raise UnsupportedInputFormat(filename)


def _extract_pdf(content: bytes) -> str:
    with pdfplumber.open(BytesIO(content)) as pdf:
        pages = [(page.extract_text() or "") for page in pdf.pages]
    return "\n".join(pages)


def _extract_docx(content: bytes) -> str:
    doc = Document(BytesIO(content))
    return "\n".join(p.text for p in doc.paragraphs)


def extract_text(filename: str, content: bytes, content_type: Optional[str] = None) -> str:
    """Return the text of an uploaded resume.

    Raises UnsupportedInputFormat for anything but PDF/DOCX and
    ExtractionFailed when the file cannot be read or holds no text.
    """
    kind = detect_format(filename, content_type)
    try:
        text = _extract_pdf(content) if kind == "pdf" else _extract_docx(content)
    except Exception as e:
        logger.error(f"{kind.upper()} parsing failed for {filename}: {e}")
        raise ExtractionFailed(filename, details=str(e)) from e

    text = text.strip()
    if not text:
        raise ExtractionFailed(filename, details="Could not extract text from the file")
    logger.info("Extracted %d chars from %s (%s)", len(text), filename, kind)
    return text
