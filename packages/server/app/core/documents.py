"""Plain-text extraction from uploaded guideline documents."""

from __future__ import annotations

import io
import zipfile

import structlog
from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

log = structlog.get_logger()

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_TYPES = frozenset({"text/plain", "text/markdown"})


class DocumentError(Exception):
    """The uploaded file could not be read as the declared type."""


def extract_text_pdf(data: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = []
        for page_num, page in enumerate(reader.pages, 1):
            page_text = (page.extract_text() or "").strip()
            if page_text:
                pages.append(f"=== Page {page_num} ===\n{page_text}")
    except (PdfReadError, ValueError) as exc:
        raise DocumentError(f"Failed to read PDF file: {exc}") from exc
    return "\n".join(pages)


def extract_text_docx(data: bytes) -> str:
    try:
        doc = DocxDocument(io.BytesIO(data))
    except (PackageNotFoundError, zipfile.BadZipFile, ValueError, KeyError, OSError) as exc:
        raise DocumentError(f"Failed to read DOCX file: {exc}") from exc

    lines = [p.text.strip() for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            lines.append(" | ".join(cell.text.strip() for cell in row.cells))
    return "\n".join(lines)


def extract_text(data: bytes, content_type: str) -> str:
    """Dispatch on content type. Raises DocumentError for unreadable input."""
    if content_type == PDF:
        text = extract_text_pdf(data)
    elif content_type == DOCX:
        text = extract_text_docx(data)
    elif content_type in TEXT_TYPES:
        text = data.decode("utf-8", errors="replace")
    else:
        raise DocumentError(f"Unsupported document type: {content_type}")

    log.debug("document.text_extracted", content_type=content_type, chars=len(text))
    return text
