"""Plain-text extraction from uploaded document bytes."""

import io
import logging

from pypdf import PdfReader

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"


def is_pdf(data: bytes, mime_type: str | None = None) -> bool:
    """Detect PDFs by declared type or magic bytes."""
    return mime_type == PDF_MIME_TYPE or data[:5] == b"%PDF-"


def extract_text(data: bytes, mime_type: str | None = None) -> str:
    """Extract plain text from a document.

    PDFs are read page by page; anything else is decoded as UTF-8 with
    undecodable bytes replaced.

    Args:
        data: Raw document bytes
        mime_type: Declared content type, if known

    Returns:
        Extracted text (pages separated by blank lines)
    """
    if not is_pdf(data, mime_type):
        return data.decode("utf-8", errors="replace")

    reader = PdfReader(io.BytesIO(data))
    pages: list[str] = []
    for number, page in enumerate(reader.pages, start=1):
        page_text = (page.extract_text() or "").strip()
        if not page_text:
            logger.debug(f"PDF page {number} has no extractable text")
            continue
        pages.append(page_text)

    return "\n\n".join(pages)
