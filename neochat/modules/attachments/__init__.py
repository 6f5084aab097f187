"""Attachment preprocessing (PDF text extraction)."""

from .pdf import NO_TEXT_PLACEHOLDER, PDFParseError, PDFText, decode_pdf_payload, extract_pdf_text

__all__ = ["NO_TEXT_PLACEHOLDER", "PDFParseError", "PDFText", "decode_pdf_payload", "extract_pdf_text"]
