"""Text extraction for PDF attachments.

The browser uploads a PDF as base64; the extracted text is then sent along
with the chat message as a text attachment.
"""

import base64
import binascii
import io
import logging
from dataclasses import dataclass

from PyPDF2 import PdfReader

from neochat.domain.errors import ValidationError

logger = logging.getLogger(__name__)

NO_TEXT_PLACEHOLDER = "(no extractable text found in PDF)"


class PDFParseError(Exception):
    """The payload decoded but could not be read as a PDF."""


@dataclass(frozen=True)
class PDFText:
    text: str
    pages: int


def decode_pdf_payload(data: str, max_bytes: int) -> bytes:
    """Decode a base64 payload, enforcing the size cap on the decoded bytes.

    Raises:
        ValidationError: empty, not base64, or larger than ``max_bytes``.
    """
    if not data or not isinstance(data, str):
        raise ValidationError("No PDF data")
    try:
        raw = base64.b64decode(data)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Invalid PDF data") from e
    if len(raw) > max_bytes:
        raise ValidationError(f"PDF too large (max {max_bytes // (1024 * 1024)} MB)")
    return raw


def extract_pdf_text(raw: bytes, max_chars: int) -> PDFText:
    """Extract the text of every page, truncated to ``max_chars``."""
    try:
        reader = PdfReader(io.BytesIO(raw))
        page_count = len(reader.pages)
        parts = []
        for page in reader.pages:
            page_text = page.extract_text()
            if page_text:
                parts.append(page_text)
    except Exception as e:  # PyPDF2 raises a mix of PdfReadError, ValueError and KeyError
        raise PDFParseError(str(e)) from e

    text = "\n".join(parts).strip()
    logger.info("Extracted %d chars from %d PDF page(s)", len(text), page_count)
    if not text:
        return PDFText(text=NO_TEXT_PLACEHOLDER, pages=page_count)
    return PDFText(text=text[:max_chars], pages=page_count)
