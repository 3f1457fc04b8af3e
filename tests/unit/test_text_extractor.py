"""Unit tests for TextExtractor and MIME classification."""

from __future__ import annotations

import fitz
import pytest

from src.services.ingestion.text_extractor import TextExtractor, mime_type_for_filename
from src.utils.errors import ExtractionError


def _make_pdf(pages: list[str]) -> bytes:
    """Build a small PDF in memory with one line of text per page."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


class TestMimeTypeForFilename:
    @pytest.mark.parametrize(
        ("filename", "expected"),
        [
            ("handbook.pdf", "application/pdf"),
            ("HANDBOOK.PDF", "application/pdf"),
            ("faq.md", "text/markdown"),
            ("faq.markdown", "text/markdown"),
            ("notes.txt", "text/plain"),
            ("no_extension", "text/plain"),
            ("archive.tar.gz", "text/plain"),
        ],
    )
    def test_classification(self, filename: str, expected: str) -> None:
        assert mime_type_for_filename(filename) == expected


class TestPdfExtraction:
    def test_pages_are_joined_in_order(self) -> None:
        data = _make_pdf(["Welcome to FBK", "Membership is open to all"])

        text = TextExtractor().extract(data, "application/pdf")

        assert "Welcome to FBK" in text
        assert "Membership is open to all" in text
        assert text.index("Welcome") < text.index("Membership")

    def test_corrupt_pdf_raises_extraction_error(self) -> None:
        with pytest.raises(ExtractionError):
            TextExtractor().extract(b"this is not a pdf at all", "application/pdf")

    def test_pdf_without_text_layer_returns_blank(self) -> None:
        doc = fitz.open()
        doc.new_page()
        data = doc.tobytes()
        doc.close()

        assert TextExtractor().extract(data, "application/pdf").strip() == ""


class TestTextDecoding:
    def test_plain_text_is_decoded_verbatim(self) -> None:
        raw = "Office hours: Monday–Friday\n".encode()
        assert TextExtractor().extract(raw, "text/plain") == "Office hours: Monday–Friday\n"

    def test_markdown_is_not_rendered(self) -> None:
        raw = b"# Programs\n\n**Founders Program** runs twice a year."
        text = TextExtractor().extract(raw, "text/markdown")
        assert text.startswith("# Programs")
        assert "**Founders Program**" in text

    def test_bom_is_dropped(self) -> None:
        raw = b"\xef\xbb\xbfHello FBK"
        assert TextExtractor().extract(raw, "text/plain") == "Hello FBK"

    def test_invalid_utf8_raises_extraction_error(self) -> None:
        with pytest.raises(ExtractionError):
            TextExtractor().extract(b"\xff\xfe\xfa invalid", "text/plain")
