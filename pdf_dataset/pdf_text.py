"""Native PDF text-layer extraction using PyMuPDF (fitz).

``PdfDocument`` is the document handle the pipeline works against: page
count, per-page text items and per-page raster rendering.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

import fitz  # PyMuPDF

from .config import EXTRACT_FORM_FIELDS, RENDER_ANNOTATIONS
from .utils import CorruptDocumentError, normalize_nfc

logger = logging.getLogger(__name__)

LINE_END_ITEM: dict[str, Any] = {"text": "\n"}


@dataclass(frozen=True)
class ParseOptions:
    """Options handed to the parser when a document is opened."""

    extract_form_fields: bool = EXTRACT_FORM_FIELDS
    render_annotations: bool = RENDER_ANNOTATIONS


class PdfDocument:
    """Parsed PDF held open for the duration of one processing run."""

    def __init__(self, doc: fitz.Document, options: ParseOptions) -> None:
        self._doc = doc
        self._options = options

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def text_items(self, page_number: int) -> list[dict[str, Any]]:
        """Return text items for a 1-based page in the order MuPDF reports them.

        Each text span becomes one item; every text line is closed by a
        line-end item. Form-field values follow the page text when enabled.
        """
        page = self._doc[page_number - 1]
        items: list[dict[str, Any]] = []
        page_dict = page.get_text("dict", flags=fitz.TEXTFLAGS_DICT & ~fitz.TEXT_PRESERVE_IMAGES)
        for block in page_dict.get("blocks", []):
            for line in block.get("lines", []):
                spans = line.get("spans", [])
                for span in spans:
                    items.append({"text": span.get("text")})
                if spans:
                    items.append(LINE_END_ITEM)
        if self._options.extract_form_fields:
            for widget in page.widgets() or []:
                items.append({"text": widget.field_value})
                items.append(LINE_END_ITEM)
        return items

    def render_page(self, page_number: int, scale: float) -> bytes:
        """Render a 1-based page at *scale* and return PNG bytes."""
        page = self._doc[page_number - 1]
        pixmap = page.get_pixmap(
            matrix=fitz.Matrix(scale, scale),
            annots=self._options.render_annotations,
        )
        return pixmap.tobytes("png")

    def close(self) -> None:
        if not self._doc.is_closed:
            self._doc.close()

    def __enter__(self) -> PdfDocument:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def open_document(data: bytes, options: ParseOptions | None = None) -> PdfDocument:
    """Parse raw PDF bytes into a ``PdfDocument``."""

    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as exc:
        raise CorruptDocumentError(f"Failed to parse PDF: {exc}") from exc
    if doc.needs_pass:
        doc.close()
        raise CorruptDocumentError("PDF is encrypted and needs a password.")
    return PdfDocument(doc, options or ParseOptions())


def _join_items(items: list[Any]) -> str:
    parts: list[str] = []
    for item in items:
        value = item.get("text") if isinstance(item, Mapping) else None
        if isinstance(value, str):
            parts.append(value)
    return "".join(parts)


def extract_text_layer(doc: PdfDocument) -> list[str]:
    """Return one normalized text-layer string per page, in page order."""

    page_texts: list[str] = []
    for page_number in range(1, doc.page_count + 1):
        try:
            text = _join_items(doc.text_items(page_number))
        except Exception as exc:
            logger.warning("Text layer unreadable on page %d: %s", page_number, exc)
            text = ""
        page_texts.append(normalize_nfc(text.rstrip()))
    return page_texts
