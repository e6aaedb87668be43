"""Convert per-page text into the row-structured dataset and its JSON form."""

from __future__ import annotations

from pathlib import PurePath
from typing import List, Sequence

from pydantic import TypeAdapter

from .schema import PageRecord

DEFAULT_EXPORT_FILENAME = "extracted-pdf-content.json"

_DATASET_ADAPTER: TypeAdapter[List[PageRecord]] = TypeAdapter(List[PageRecord])


def page_rows(text: str) -> list[str]:
    """Return the trimmed non-blank lines of *text*, in order."""
    return [line.strip() for line in text.split("\n") if line.strip()]


def format_page(page_number: int, text: str) -> PageRecord:
    rows = [{str(index): row} for index, row in enumerate(page_rows(text))]
    return PageRecord(page_number=page_number, content=rows)


def format_dataset(page_texts: Sequence[str]) -> list[PageRecord]:
    """Build one ``PageRecord`` per page text; never fails."""
    return [format_page(index, text) for index, text in enumerate(page_texts, start=1)]


def dataset_to_json(dataset: Sequence[PageRecord]) -> bytes:
    """Serialise a dataset as UTF-8 JSON with 2-space indentation."""
    return _DATASET_ADAPTER.dump_json(list(dataset), indent=2, by_alias=True)


def dataset_from_json(payload: str | bytes) -> list[PageRecord]:
    return _DATASET_ADAPTER.validate_json(payload)


def export_filename(filename: str | None) -> str:
    """Return ``<stem>-dataset.json`` for an uploaded file name."""
    if not filename:
        return DEFAULT_EXPORT_FILENAME
    name = PurePath(filename).name
    stem = name[:-4] if name.lower().endswith(".pdf") else name
    return f"{stem}-dataset.json" if stem else DEFAULT_EXPORT_FILENAME
