"""
Plain-text extraction for ingested documents.

Dispatches on file extension. Text formats are decoded as UTF-8, HTML is
stripped of markup, PDF goes through PyMuPDF and DOCX through python-docx.
"""

import html
import io
import json
import logging
import re
from pathlib import Path
from typing import Callable, Dict

from ..core.exceptions import RagExtractionError


logger = logging.getLogger(__name__)


class TextExtractor:
    """
    Extracts plain text from document bytes.

    Example:
        >>> TextExtractor().extract(b"<p>Hello</p>", "page.html")
        'Hello'
    """

    def __init__(self):
        self._script_pattern = re.compile(
            r'<(script|style)[^>]*>.*?</\1>', re.DOTALL | re.IGNORECASE
        )
        self._block_pattern = re.compile(
            r'<\s*(br|/p|/div|/li|/h[1-6]|/tr)[^>]*>', re.IGNORECASE
        )
        self._html_tag_pattern = re.compile(r'<[^>]+>')

        self._handlers: Dict[str, Callable[[bytes], str]] = {
            ".txt": self._extract_text,
            ".md": self._extract_text,
            ".csv": self._extract_text,
            ".json": self._extract_json,
            ".html": self._extract_html,
            ".htm": self._extract_html,
            ".pdf": self._extract_pdf,
            ".docx": self._extract_docx,
        }

    def supports(self, file_name: str) -> bool:
        return Path(file_name).suffix.lower() in self._handlers

    def extract(self, data: bytes, file_name: str) -> str:
        """
        Extract text from ``data`` based on the extension of ``file_name``.

        Raises:
            RagExtractionError: Unsupported type (``UNSUPPORTED_FILE_TYPE``)
                or a parser failure (``EXTRACTION_FAILED``)
        """
        ext = Path(file_name).suffix.lower()
        handler = self._handlers.get(ext)
        if handler is None:
            raise RagExtractionError(
                f"Unsupported file type: {ext or file_name}",
                code="UNSUPPORTED_FILE_TYPE",
            )

        try:
            text = handler(data)
        except RagExtractionError:
            raise
        except Exception as e:
            raise RagExtractionError(f"Failed to extract text from {file_name}: {e}") from e

        logger.debug(f"Extracted {len(text)} characters from {file_name}")
        return text

    def _extract_text(self, data: bytes) -> str:
        return data.decode("utf-8", errors="replace")

    def _extract_json(self, data: bytes) -> str:
        text = self._extract_text(data)
        try:
            return json.dumps(json.loads(text), indent=2, ensure_ascii=False)
        except ValueError:
            # Keep malformed JSON as text
            return text

    def _extract_html(self, data: bytes) -> str:
        text = self._extract_text(data)
        text = self._script_pattern.sub('', text)
        text = self._block_pattern.sub('\n', text)
        text = self._html_tag_pattern.sub('', text)
        text = html.unescape(text)
        text = re.sub(r'[ \t]{2,}', ' ', text)
        text = re.sub(r'\n\s*\n+', '\n\n', text)
        return text.strip()

    def _extract_pdf(self, data: bytes) -> str:
        import fitz  # PyMuPDF

        with fitz.open(stream=data, filetype="pdf") as doc:
            parts = [page.get_text("text") for page in doc]
        return "\n".join(parts).strip()

    def _extract_docx(self, data: bytes) -> str:
        import docx  # python-docx

        document = docx.Document(io.BytesIO(data))
        parts = [p.text for p in document.paragraphs if p.text]
        return "\n".join(parts).strip()
