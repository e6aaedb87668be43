"""Main extraction orchestrator.

``ExtractionSession`` runs one PDF at a time through the pipeline:

1. parse the bytes into a document handle,
2. extract the native text layer,
3. accept it if some page is non-blank and the target script is present,
   otherwise fall back to OCR with the first language-data location that
   loads,
4. format the page texts into the row dataset.

The session owns the processing status. Observers read ``snapshot()`` or
subscribe through the callbacks; they never mutate state. ``reset()``
supersedes an in-flight run: its OCR worker is terminated and its late
results are discarded.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Sequence

from .config import (
    MAX_FILE_SIZE_BYTES,
    OCR_LANG_PATHS,
    OCR_SCALE,
    OCR_SCRIPT,
    PDF_MIME_TYPE,
    TESSDATA_DIR,
)
from .dataset import format_dataset, page_rows
from .ocr import WorkerFactory, WorkerLease, create_worker, load_ocr_worker, recognize_pages
from .ocr_router import ScriptProfile, candidate_lang_paths, resolve_script_profile
from .pdf_text import ParseOptions, extract_text_layer, open_document
from .schema import ExtractionMethod, PageRecord, ProcessingStatus, SessionState
from .script_detect import contains_script
from .utils import (
    CorruptDocumentError,
    ExtractionError,
    OcrUnavailableError,
    PdfProcessingError,
    ResourceUnavailableError,
    RunCancelledError,
    SessionBusyError,
    validate_upload,
)

logger = logging.getLogger(__name__)

DatasetCallback = Callable[[list[PageRecord]], None]
MessageCallback = Callable[[str], None]
StatusCallback = Callable[[ProcessingStatus], None]
DocumentOpener = Callable[[bytes, ParseOptions], Any]


def text_layer_accepted(page_texts: Sequence[str], profile: ScriptProfile) -> bool:
    """Return True when the text layer is usable as-is.

    Requires at least one non-blank page AND at least one code point of the
    target script. Text in other scripts alone is rejected.
    """
    any_non_blank = any(text.strip() for text in page_texts)
    return any_non_blank and contains_script(page_texts, profile.unicode_ranges)


class ExtractionSession:
    """Single-run-at-a-time extraction state machine."""

    def __init__(
        self,
        profile: ScriptProfile | None = None,
        lang_paths: Sequence[str] | None = None,
        scale: float = OCR_SCALE,
        force_ocr: bool = False,
        max_file_size: int = MAX_FILE_SIZE_BYTES,
        parse_options: ParseOptions | None = None,
        document_opener: DocumentOpener = open_document,
        worker_factory: WorkerFactory = create_worker,
        on_processed: DatasetCallback | None = None,
        on_message: MessageCallback | None = None,
        on_status: StatusCallback | None = None,
    ) -> None:
        self.profile = profile or resolve_script_profile(OCR_SCRIPT)
        self.lang_paths = (
            list(lang_paths) if lang_paths
            else candidate_lang_paths(self.profile, OCR_LANG_PATHS, TESSDATA_DIR)
        )
        self.scale = scale
        self.force_ocr = force_ocr
        self.max_file_size = max_file_size
        self.parse_options = parse_options or ParseOptions()
        self._document_opener = document_opener
        self._worker_factory = worker_factory
        self._on_processed = on_processed
        self._on_message = on_message
        self._on_status = on_status

        self._lock = threading.Lock()
        self._generation = 0
        self._active_run: int | None = None
        self._lease: WorkerLease | None = None
        self._page_texts: list[str] = []
        self._state = SessionState()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------
    @property
    def status(self) -> ProcessingStatus:
        with self._lock:
            return self._state.status

    @property
    def dataset(self) -> list[PageRecord]:
        with self._lock:
            return list(self._state.pages)

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._active_run is not None

    def snapshot(self) -> SessionState:
        with self._lock:
            return self._state.model_copy(deep=True)

    def page_preview(self, page_number: int) -> list[str]:
        """Return the non-blank lines of a processed page (1-based)."""
        with self._lock:
            texts = list(self._page_texts)
        if page_number < 1 or page_number > len(texts):
            raise IndexError(f"Page {page_number} out of range (1..{len(texts)}).")
        return page_rows(texts[page_number - 1])

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def process(
        self,
        data: bytes,
        filename: str | None = None,
        content_type: str | None = PDF_MIME_TYPE,
    ) -> list[PageRecord]:
        """Run one document through the pipeline and return its dataset.

        Raises ``SessionBusyError`` if another run is active. Terminal
        failures set status ``failed`` and are re-raised as
        ``ExtractionError`` subclasses. A run superseded by ``reset()``
        returns an empty list and leaves the session untouched.
        """
        run_id = self._start_run(filename)
        committed = False
        dataset: list[PageRecord] = []
        try:
            validate_upload(data, content_type, self.max_file_size)
            page_texts, method = self._extract(run_id, data)
            dataset = format_dataset(page_texts)
            committed = self._commit(run_id, method, page_texts, dataset)
        except RunCancelledError:
            logger.info("Run %d superseded by reset; discarding results", run_id)
            return []
        except ExtractionError as exc:
            self._fail(run_id, exc)
            raise
        except Exception as exc:
            logger.exception("Unexpected failure while processing PDF")
            error = PdfProcessingError(f"Unexpected failure: {exc}")
            self._fail(run_id, error)
            raise error from exc
        finally:
            self._end_run(run_id)

        if not committed:
            logger.info("Run %d superseded by reset; discarding results", run_id)
            return []
        self._notify_processed(dataset)
        return dataset

    def reset(self) -> None:
        """Return to ``idle``, terminating any in-flight OCR worker."""
        with self._lock:
            self._generation += 1
            self._active_run = None
            lease, self._lease = self._lease, None
            self._page_texts = []
            self._state = SessionState()
        if lease is not None:
            logger.info("Reset during OCR; terminating worker")
            lease.release()
        self._emit_status(ProcessingStatus.IDLE)
        self._notify_processed([])

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def _extract(self, run_id: int, data: bytes) -> tuple[list[str], ExtractionMethod]:
        with self._open(data) as doc:
            self._update(run_id, page_count=doc.page_count)
            page_texts = extract_text_layer(doc)
            if not self.force_ocr and text_layer_accepted(page_texts, self.profile):
                logger.info("Text layer accepted for %d pages", len(page_texts))
                return page_texts, ExtractionMethod.TEXT_LAYER

            display = self.profile.display_name
            logger.info("Standard extraction failed to find %s text; using OCR", display)
            self._update(
                run_id,
                status=ProcessingStatus.OCR_FALLBACK,
                message=(
                    f"Standard text extraction failed. Running OCR for {display} "
                    "text (may be slower)…"
                ),
            )
            with self._acquire_worker(run_id) as lease:
                page_texts = recognize_pages(
                    lease.worker,
                    doc,
                    scale=self.scale,
                    progress=lambda page, total: self._on_progress(run_id, page, total),
                    should_continue=lambda: self._is_current(run_id),
                )
            return page_texts, ExtractionMethod.OCR

    def _open(self, data: bytes) -> Any:
        try:
            return self._document_opener(data, self.parse_options)
        except CorruptDocumentError:
            raise
        except Exception as exc:
            raise CorruptDocumentError(f"Failed to parse PDF: {exc}") from exc

    def _acquire_worker(self, run_id: int) -> WorkerLease:
        try:
            worker = load_ocr_worker(
                self.lang_paths, self.profile.tesseract_lang, factory=self._worker_factory,
            )
        except ResourceUnavailableError as exc:
            raise OcrUnavailableError(
                str(exc),
                user_message=(
                    f"Could not load {self.profile.display_name} language data for OCR. "
                    "Check the network connection and try again."
                ),
            ) from exc

        lease = WorkerLease(worker)
        with self._lock:
            current = self._generation == run_id
            if current:
                self._lease = lease
        if not current:
            lease.release()
            raise RunCancelledError("Run superseded while loading OCR worker.")
        return lease

    def _on_progress(self, run_id: int, page_number: int, total: int) -> None:
        self._update(run_id, message=f"Processing page {page_number} of {total} with OCR…")

    # ------------------------------------------------------------------
    # State transitions (all guarded by run generation)
    # ------------------------------------------------------------------
    def _is_current(self, run_id: int) -> bool:
        with self._lock:
            return self._generation == run_id

    def _start_run(self, filename: str | None) -> int:
        with self._lock:
            if self._active_run is not None:
                raise SessionBusyError()
            self._generation += 1
            run_id = self._generation
            self._active_run = run_id
            self._lease = None
            self._page_texts = []
            self._state = SessionState(status=ProcessingStatus.LOADING, filename=filename)
        self._emit_status(ProcessingStatus.LOADING)
        self._notify_processed([])
        return run_id

    def _end_run(self, run_id: int) -> None:
        with self._lock:
            if self._active_run == run_id:
                self._active_run = None
            if self._generation == run_id:
                self._lease = None

    def _update(self, run_id: int, **changes: Any) -> bool:
        with self._lock:
            if self._generation != run_id:
                return False
            previous = self._state.status
            self._state = self._state.model_copy(update=changes)
        status = changes.get("status")
        if status is not None and status != previous:
            self._emit_status(status)
        if changes.get("message"):
            self._emit_message(changes["message"])
        return True

    def _commit(
        self,
        run_id: int,
        method: ExtractionMethod,
        page_texts: list[str],
        dataset: list[PageRecord],
    ) -> bool:
        with self._lock:
            if self._generation != run_id:
                return False
            self._page_texts = list(page_texts)
            self._state = self._state.model_copy(update={
                "status": ProcessingStatus.SUCCEEDED,
                "message": None,
                "error_kind": None,
                "method": method,
                "page_count": len(page_texts),
                "pages": list(dataset),
            })
        self._emit_status(ProcessingStatus.SUCCEEDED)
        return True

    def _fail(self, run_id: int, exc: ExtractionError) -> None:
        logger.warning("Processing failed (%s): %s", exc.kind.value, exc)
        if not self._update(
            run_id,
            status=ProcessingStatus.FAILED,
            message=exc.user_message,
            error_kind=exc.kind,
            method=None,
            pages=[],
        ):
            return
        with self._lock:
            if self._generation == run_id:
                self._page_texts = []

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------
    def _emit_status(self, status: ProcessingStatus) -> None:
        if self._on_status is None:
            return
        try:
            self._on_status(status)
        except Exception as exc:
            logger.warning("Status callback failed: %s", exc)

    def _emit_message(self, message: str) -> None:
        if self._on_message is None:
            return
        try:
            self._on_message(message)
        except Exception as exc:
            logger.warning("Message callback failed: %s", exc)

    def _notify_processed(self, dataset: list[PageRecord]) -> None:
        if self._on_processed is None:
            return
        try:
            self._on_processed(dataset)
        except Exception as exc:
            logger.warning("Dataset callback failed: %s", exc)


def extract_dataset(
    data: bytes,
    filename: str | None = None,
    content_type: str | None = PDF_MIME_TYPE,
    **session_kwargs: Any,
) -> list[PageRecord]:
    """Process *data* in a fresh session and return its dataset."""
    session = ExtractionSession(**session_kwargs)
    return session.process(data, filename=filename, content_type=content_type)
