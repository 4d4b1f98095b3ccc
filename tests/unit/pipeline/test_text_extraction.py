"""
Unit tests for text extraction.

Tests for:
- Plain text, Markdown, CSV and JSON
- HTML markup stripping
- PDF and DOCX parsing
- Unsupported and corrupt inputs
"""

import io
import json

import pytest

from localrag.core.exceptions import RagExtractionError
from localrag.extraction.text_extractors import TextExtractor


@pytest.fixture
def extractor():
    return TextExtractor()


class TestTextFormats:
    """Tests for text-based formats."""

    def test_plain_text(self, extractor):
        assert extractor.extract("Grüße aus Köln".encode("utf-8"), "a.txt") == "Grüße aus Köln"

    def test_invalid_utf8_is_replaced(self, extractor):
        assert extractor.extract(b"ok \xff end", "a.md") == "ok � end"

    def test_json_is_pretty_printed(self, extractor):
        text = extractor.extract(b'{"title":"Plan","steps":[1,2]}', "plan.json")

        assert json.loads(text) == {"title": "Plan", "steps": [1, 2]}
        assert '\n  "title": "Plan"' in text

    def test_malformed_json_kept_as_text(self, extractor):
        assert extractor.extract(b"{not json", "broken.json") == "{not json"

    def test_extension_is_case_insensitive(self, extractor):
        assert extractor.supports("REPORT.PDF") is True
        assert extractor.extract(b"a,b\n1,2", "DATA.CSV") == "a,b\n1,2"


class TestHtml:
    """Tests for HTML stripping."""

    def test_strips_markup_scripts_and_entities(self, extractor):
        page = (
            b"<html><head><style>p { color: red; }</style>"
            b"<script>alert('x')</script></head>"
            b"<body><h1>Title</h1><p>Fish &amp; chips</p><p>Second</p></body></html>"
        )

        text = extractor.extract(page, "page.html")

        assert "alert" not in text
        assert "color" not in text
        assert "<" not in text
        assert text.splitlines() == ["Title", "Fish & chips", "Second"]


class TestBinaryFormats:
    """Tests for PDF and DOCX."""

    def test_pdf(self, extractor):
        import fitz

        doc = fitz.open()
        doc.new_page().insert_text((72, 72), "Quarterly revenue grew")
        doc.new_page().insert_text((72, 72), "Second page text")
        data = doc.tobytes()
        doc.close()

        text = extractor.extract(data, "report.pdf")

        assert "Quarterly revenue grew" in text
        assert "Second page text" in text

    def test_docx(self, extractor):
        import docx

        document = docx.Document()
        document.add_paragraph("First paragraph")
        document.add_paragraph("")
        document.add_paragraph("Second paragraph")
        buffer = io.BytesIO()
        document.save(buffer)

        assert extractor.extract(buffer.getvalue(), "memo.docx") == "First paragraph\nSecond paragraph"

    def test_corrupt_pdf(self, extractor):
        with pytest.raises(RagExtractionError) as exc_info:
            extractor.extract(b"%PDF-not really", "broken.pdf")

        assert exc_info.value.code == "EXTRACTION_FAILED"


class TestUnsupported:
    """Tests for unsupported files."""

    def test_unsupported_type(self, extractor):
        with pytest.raises(RagExtractionError) as exc_info:
            extractor.extract(b"\x00\x01", "image.png")

        assert exc_info.value.code == "UNSUPPORTED_FILE_TYPE"
        assert extractor.supports("image.png") is False
