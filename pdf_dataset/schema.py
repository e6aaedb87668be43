"""Pydantic models for the extracted dataset and session state."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field

from .utils import ErrorKind


class ProcessingStatus(str, Enum):
    """Lifecycle of one processing run."""

    IDLE = "idle"
    LOADING = "loading"
    OCR_FALLBACK = "ocr-fallback-in-progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ExtractionMethod(str, Enum):
    TEXT_LAYER = "text_layer"
    OCR = "ocr"


class PageRecord(BaseModel):
    """One page of the dataset: 1-based page number plus its rows.

    Each row is a single-entry mapping ``{"<row index>": "<row text>"}``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    page_number: int = Field(alias="pageNumber", ge=1)
    content: List[Dict[str, str]] = Field(default_factory=list)


class SessionState(BaseModel):
    """Observer snapshot of an extraction session."""

    model_config = ConfigDict(populate_by_name=True)

    status: ProcessingStatus = ProcessingStatus.IDLE
    message: str | None = None
    error_kind: ErrorKind | None = None
    filename: str | None = None
    method: ExtractionMethod | None = None
    page_count: int = 0
    pages: List[PageRecord] = Field(default_factory=list)
