"""
extractor.py — Plain-text extraction from uploaded business-profile documents.

Supported kinds (closed set):
  PDF   — pdfplumber text layer (no OCR: image-only PDFs are rejected)
  DOCX  — python-docx paragraphs + table cells (.doc accepted when it is really OOXML)
  TXT   — UTF-8 decode, invalid byte sequences replaced

classify_document() picks the kind from the declared MIME type first, then the
file-name suffix. extract_text() is pure: bytes in, text out. Callers enforce the
size limit (settings.max_file_size) before calling.

Logs only sizes and kinds — never document text.
"""
from __future__ import annotations

import io
import logging
import os
from enum import Enum
from typing import Optional

from intake.errors import DocumentUnreadable, NoExtractableText, UnsupportedFileType

logger = logging.getLogger(__name__)


class DocumentKind(str, Enum):
    pdf = "pdf"
    docx = "docx"
    txt = "txt"


MIME_KINDS: dict[str, DocumentKind] = {
    "application/pdf": DocumentKind.pdf,
    "application/x-pdf": DocumentKind.pdf,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DocumentKind.docx,
    "application/msword": DocumentKind.docx,
    "text/plain": DocumentKind.txt,
}

SUFFIX_KINDS: dict[str, DocumentKind] = {
    ".pdf": DocumentKind.pdf,
    ".docx": DocumentKind.docx,
    ".doc": DocumentKind.docx,
    ".txt": DocumentKind.txt,
}


def classify_document(mime_type: Optional[str], file_name: Optional[str]) -> DocumentKind:
    """
    Resolve the document kind from the declared MIME type, falling back to the
    file-name suffix when the MIME type is missing or not one we recognize.

    Raises:
        UnsupportedFileType: neither the MIME type nor the suffix matches.
    """
    if mime_type:
        # "text/plain; charset=utf-8" → "text/plain"
        kind = MIME_KINDS.get(mime_type.split(";")[0].strip().lower())
        if kind is not None:
            return kind

    if file_name:
        # Stored URLs may carry a query string after the file name
        suffix = os.path.splitext(file_name.split("?")[0])[1].lower()
        kind = SUFFIX_KINDS.get(suffix)
        if kind is not None:
            return kind

    logger.info("Unsupported document mime_type=%s suffix_present=%s", mime_type, bool(file_name))
    raise UnsupportedFileType()


# ---------------------------------------------------------------------------
# Per-kind extractors
# ---------------------------------------------------------------------------

def _extract_pdf(data: bytes) -> str:
    import pdfplumber

    parts: list[str] = []
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for page in pdf.pages:
                text = page.extract_text(x_tolerance=3, y_tolerance=3)
                if text:
                    parts.append(text)
    except Exception as exc:
        logger.warning("pdfplumber could not open document: %s", type(exc).__name__)
        raise DocumentUnreadable() from exc
    return "\n".join(parts)


def _extract_docx(data: bytes) -> str:
    from docx import Document as DocxDocument

    try:
        doc = DocxDocument(io.BytesIO(data))
    except Exception as exc:
        # Legacy binary .doc files land here too
        logger.warning("python-docx could not open document: %s", type(exc).__name__)
        raise DocumentUnreadable() from exc

    parts = [p.text for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                parts.append(" | ".join(cells))
    return "\n".join(parts)


def _extract_txt(data: bytes) -> str:
    # utf-8-sig drops a leading BOM written by Windows editors
    return data.decode("utf-8-sig", errors="replace")


_EXTRACTORS = {
    DocumentKind.pdf: _extract_pdf,
    DocumentKind.docx: _extract_docx,
    DocumentKind.txt: _extract_txt,
}


def extract_text(data: bytes, mime_type: Optional[str], file_name: Optional[str]) -> str:
    """
    Extract plain text from a document.

    Raises:
        UnsupportedFileType: the kind cannot be determined.
        DocumentUnreadable:  the parser cannot open the file.
        NoExtractableText:   a PDF or DOCX yields no text (image-only, empty).
    """
    kind = classify_document(mime_type, file_name)
    text = _EXTRACTORS[kind](data)

    if kind is not DocumentKind.txt and not text.strip():
        logger.info("No extractable text kind=%s bytes=%d", kind.value, len(data))
        raise NoExtractableText()

    logger.info("Extracted text kind=%s bytes=%d chars=%d", kind.value, len(data), len(text))
    return text
