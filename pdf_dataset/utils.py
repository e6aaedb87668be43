"""Errors and small helpers shared by the extraction pipeline."""

from __future__ import annotations

import shutil
import unicodedata
from enum import Enum
from typing import Iterable

from .config import MAX_FILE_SIZE_BYTES, PDF_MIME_TYPE

GENERIC_FAILURE_MESSAGE = (
    "Failed to process PDF. The file may be corrupted, image-only, "
    "or use unsupported fonts/encoding for Myanmar text."
)


class ErrorKind(str, Enum):
    """Structured error kind for programmatic consumers."""

    INVALID_INPUT = "invalid_input"
    CORRUPT_DOCUMENT = "corrupt_document"
    OCR_UNAVAILABLE = "ocr_unavailable"
    PAGEWISE_RECOGNITION_FAILURE = "pagewise_recognition_failure"
    PROCESSING_FAILED = "processing_failed"


class ExtractionError(Exception):
    """Base exception for extraction errors."""

    kind: ErrorKind = ErrorKind.PROCESSING_FAILED

    def __init__(self, message: str, user_message: str | None = None) -> None:
        super().__init__(message)
        self.user_message = user_message or GENERIC_FAILURE_MESSAGE


class InvalidInputError(ExtractionError):
    """Raised when an upload has the wrong type, is empty, or is too large."""

    kind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str, reason: str) -> None:
        super().__init__(message, user_message=message)
        self.reason = reason


class CorruptDocumentError(ExtractionError):
    """Raised when the PDF cannot be parsed."""

    kind = ErrorKind.CORRUPT_DOCUMENT


class MissingDependencyError(ExtractionError):
    """Raised when required system dependencies are missing."""


class ResourceUnavailableError(ExtractionError):
    """Raised when no language-data location yields a working OCR worker.

    ``errors`` keeps every (location, exception) pair for diagnostics;
    ``last_error`` is the exception from the final attempt.
    """

    def __init__(self, message: str, errors: list[tuple[str, BaseException]]) -> None:
        super().__init__(message)
        self.errors = errors
        self.last_error = errors[-1][1] if errors else None


class OcrUnavailableError(ExtractionError):
    """Raised when OCR fallback is needed but no worker could be started."""

    kind = ErrorKind.OCR_UNAVAILABLE


class PageRecognitionError(ExtractionError):
    """Raised when one page fails to render or recognise. Never terminal."""

    kind = ErrorKind.PAGEWISE_RECOGNITION_FAILURE


class PdfProcessingError(ExtractionError):
    """Raised when PDF processing fails for an unexpected reason."""


class RunCancelledError(ExtractionError):
    """Raised inside a run that was superseded by a reset."""


class SessionBusyError(ExtractionError):
    """Raised when a document is submitted while another run is active."""

    def __init__(self, message: str = "A document is already being processed.") -> None:
        super().__init__(message, user_message=message)


def normalize_nfc(text: str) -> str:
    """Return *text* in NFC form, or unchanged if normalization fails."""

    try:
        return unicodedata.normalize("NFC", text)
    except (TypeError, ValueError):
        return text


def validate_upload(
    data: bytes,
    content_type: str | None,
    max_bytes: int = MAX_FILE_SIZE_BYTES,
) -> None:
    """Reject uploads that are not PDFs or exceed the size ceiling."""

    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type != PDF_MIME_TYPE:
        raise InvalidInputError("Please select a valid PDF file.", reason="wrong_type")
    if not data:
        raise InvalidInputError("Uploaded file is empty.", reason="empty")
    if len(data) > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise InvalidInputError(
            f"File size exceeds {limit_mb}MB limit. Please select a smaller file.",
            reason="too_large",
        )


def check_binary_exists(binary_name: str) -> bool:
    """Return True if a binary is available on PATH."""

    return shutil.which(binary_name) is not None


def ensure_binaries(binaries: Iterable[str]) -> None:
    """Ensure all required binaries exist on PATH."""

    missing = [binary for binary in binaries if not check_binary_exists(binary)]
    if missing:
        raise MissingDependencyError(
            f"Missing required system binaries: {', '.join(missing)}"
        )
