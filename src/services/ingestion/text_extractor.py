"""Raw upload bytes to plain text.

PDFs go through PyMuPDF (fitz) and yield their concatenated text layer,
page by page.  Everything else (plain text, markdown) is decoded as UTF-8
as-is; markdown is not rendered at this stage.
"""

from __future__ import annotations

from pathlib import PurePath

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

PDF_MIME_TYPE = "application/pdf"

_MIME_BY_SUFFIX: dict[str, str] = {
    ".pdf": PDF_MIME_TYPE,
    ".md": "text/markdown",
    ".markdown": "text/markdown",
}


def mime_type_for_filename(filename: str) -> str:
    """Classify an upload by its extension: PDF, markdown, or plain text."""
    return _MIME_BY_SUFFIX.get(PurePath(filename).suffix.lower(), "text/plain")


class TextExtractor:
    """Converts raw bytes plus a declared MIME type into plain text."""

    def extract(self, data: bytes, mime_type: str) -> str:
        """Return the plain text of *data*.

        Raises
        ------
        ExtractionError
            If a PDF cannot be opened or parsed, or a text payload is not
            valid UTF-8.
        """
        if mime_type == PDF_MIME_TYPE:
            return self._extract_pdf(data)
        return self._decode_text(data)

    @staticmethod
    def _extract_pdf(data: bytes) -> str:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ExtractionError(
                message=f"Could not open PDF: {exc}",
                provider_name="pymupdf",
            ) from exc

        try:
            pages = [page.get_text("text") for page in doc]
        except Exception as exc:
            raise ExtractionError(
                message=f"Could not read PDF text layer: {exc}",
                provider_name="pymupdf",
            ) from exc
        finally:
            doc.close()

        text = "\n".join(pages)
        if not text.strip():
            # Scanned PDFs without an OCR layer end up here.
            logger.warning("pdf_no_text_extracted", pages=len(pages))
        logger.debug("pdf_extracted", pages=len(pages), characters=len(text))
        return text

    @staticmethod
    def _decode_text(data: bytes) -> str:
        try:
            # utf-8-sig drops a leading BOM if present.
            return data.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ExtractionError(
                message=f"Document is not valid UTF-8 text: {exc.reason} at byte {exc.start}",
            ) from exc
