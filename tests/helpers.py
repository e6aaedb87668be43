"""Test doubles for the document handle and OCR worker."""

from __future__ import annotations

import io
from typing import Any, Callable

import fitz
from PIL import Image

from pdf_dataset.ocr import RecognitionResult


def png_bytes(size: tuple[int, int] = (20, 20)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color="white").save(buffer, format="PNG")
    return buffer.getvalue()


def make_pdf_bytes(pages: list[list[str]]) -> bytes:
    """Build a PDF whose pages carry the given lines of Latin text."""
    doc = fitz.open()
    for lines in pages:
        page = doc.new_page(width=612, height=792)
        for index, line in enumerate(lines):
            page.insert_text((72, 100 + 40 * index), line, fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data


class FakeDocument:
    """In-memory document handle: text items per page, PNG per render."""

    def __init__(self, page_items: list[list[Any]], render_errors: set[int] | None = None) -> None:
        self.page_items = page_items
        self.render_errors = render_errors or set()
        self.rendered: list[tuple[int, float]] = []
        self.closed = False

    @classmethod
    def from_texts(cls, texts: list[str], **kwargs: Any) -> FakeDocument:
        return cls([[{"text": text}] for text in texts], **kwargs)

    @property
    def page_count(self) -> int:
        return len(self.page_items)

    def text_items(self, page_number: int) -> list[Any]:
        items = self.page_items[page_number - 1]
        if isinstance(items, Exception):
            raise items
        return items

    def render_page(self, page_number: int, scale: float) -> bytes:
        self.rendered.append((page_number, scale))
        if page_number in self.render_errors:
            raise RuntimeError(f"cannot render page {page_number}")
        return png_bytes()

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeDocument:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class FakeWorker:
    """OCR worker returning scripted texts page by page."""

    def __init__(
        self,
        texts: list[str | Exception],
        on_recognize: Callable[[int], None] | None = None,
    ) -> None:
        self.texts = list(texts)
        self.on_recognize = on_recognize
        self.calls = 0
        self.terminate_calls = 0

    def recognize(self, image: bytes) -> RecognitionResult:
        self.calls += 1
        if self.on_recognize is not None:
            self.on_recognize(self.calls)
        value = self.texts[self.calls - 1]
        if isinstance(value, Exception):
            raise value
        return RecognitionResult(text=value)

    def terminate(self) -> None:
        self.terminate_calls += 1


class RecordingFactory:
    """Worker factory that fails for configured locations and records attempts."""

    def __init__(self, worker: Any = None, failing: set[str] | None = None) -> None:
        self.worker = worker
        self.failing = failing or set()
        self.attempts: list[tuple[str, str]] = []

    def __call__(self, lang: str, lang_path: str) -> Any:
        self.attempts.append((lang, lang_path))
        if lang_path in self.failing:
            raise OSError(f"unreachable: {lang_path}")
        return self.worker


def opener_for(doc: FakeDocument) -> Callable[..., FakeDocument]:
    def _open(data: bytes, options: Any) -> FakeDocument:
        return doc
    return _open
