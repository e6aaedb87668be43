"""Tesseract-based OCR fallback.

Language data is fetched from an ordered list of locations (first success
wins), bound to a ``TesseractWorker``, and used to recognise rendered pages
one at a time. A page that fails to render or recognise yields an empty
string; the batch always continues.
"""

from __future__ import annotations

import gzip
import io
import logging
import shutil
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Sequence
from urllib.parse import urlsplit

import httpx
import pytesseract
from PIL import Image, ImageFilter, ImageOps

from .config import (
    OCR_DOWNLOAD_TIMEOUT,
    OCR_OEM,
    OCR_PAGE_TIMEOUT,
    OCR_PREPROCESS,
    OCR_PSM,
    OCR_SCALE,
)
from .utils import (
    MissingDependencyError,
    PageRecognitionError,
    ResourceUnavailableError,
    RunCancelledError,
    ensure_binaries,
    normalize_nfc,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
WorkerFactory = Callable[[str, str], Any]

GZIP_MAGIC = b"\x1f\x8b"


@dataclass(frozen=True)
class RecognitionResult:
    text: str


@dataclass(frozen=True)
class PageOutcome:
    """Result-or-error for one page of an OCR batch."""

    page_number: int
    text: str
    error: PageRecognitionError | None = None


def _build_config(tessdata_dir: Path, oem: int = OCR_OEM, psm: int = OCR_PSM) -> str:
    return f'--oem {oem} --psm {psm} --tessdata-dir "{tessdata_dir}"'


def preprocess_image(
    image: Image.Image,
    median_size: int = 3,
    autocontrast_cutoff: int = 1,
) -> Image.Image:
    """Apply light Pillow preprocessing to improve OCR quality."""

    gray = image.convert("L")
    gray = ImageOps.autocontrast(gray, cutoff=autocontrast_cutoff)
    return gray.filter(ImageFilter.MedianFilter(size=median_size))


class TesseractWorker:
    """Tesseract bound to one language and one tessdata directory."""

    def __init__(
        self,
        lang: str,
        tessdata_dir: Path,
        owns_dir: bool = False,
        psm: int = OCR_PSM,
        timeout: int = OCR_PAGE_TIMEOUT,
        preprocess: bool = OCR_PREPROCESS,
    ) -> None:
        self.lang = lang
        self.tessdata_dir = tessdata_dir
        self.timeout = timeout
        self.preprocess = preprocess
        self._owns_dir = owns_dir
        self._config = _build_config(tessdata_dir, psm=psm)
        self._terminated = False

    @property
    def terminated(self) -> bool:
        return self._terminated

    def recognize(self, image: bytes) -> RecognitionResult:
        """Run OCR on an encoded image buffer."""
        if self._terminated:
            raise PageRecognitionError("OCR worker has been terminated.")
        with Image.open(io.BytesIO(image)) as img:
            prepared = preprocess_image(img) if self.preprocess else img.convert("RGB")
            text = pytesseract.image_to_string(
                prepared, lang=self.lang, config=self._config, timeout=self.timeout,
            )
        return RecognitionResult(text=text or "")

    def terminate(self) -> None:
        self._terminated = True
        if self._owns_dir:
            shutil.rmtree(self.tessdata_dir, ignore_errors=True)


# ---------------------------------------------------------------------------
# Language data
# ---------------------------------------------------------------------------
def _is_remote(location: str) -> bool:
    return urlsplit(location).scheme in ("http", "https")


def _local_dir(location: str) -> Path:
    parts = urlsplit(location)
    path = parts.path if parts.scheme == "file" else location
    return Path(path).expanduser()


def _download_traineddata(
    base_url: str, lang: str, target_dir: Path, client: httpx.Client
) -> Path:
    """Fetch ``<lang>.traineddata`` (gzipped or plain) from *base_url* into *target_dir*."""

    base = base_url.rstrip("/")
    target = target_dir / f"{lang}.traineddata"
    last_exc: Exception | None = None
    for suffix in (".traineddata.gz", ".traineddata"):
        url = f"{base}/{lang}{suffix}"
        try:
            response = client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.debug("Language data not available at %s: %s", url, exc)
            last_exc = exc
            continue
        payload = response.content
        if payload.startswith(GZIP_MAGIC):
            payload = gzip.decompress(payload)
        if not payload:
            last_exc = OSError(f"Empty language data at {url}")
            continue
        target.write_bytes(payload)
        return target
    raise OSError(f"No {lang} language data at {base_url}: {last_exc}") from last_exc


def _verify_language(lang: str, tessdata_dir: Path) -> None:
    """Raise unless Tesseract can load *lang* from *tessdata_dir*."""
    blank = Image.new("L", (32, 32), 255)
    try:
        pytesseract.image_to_string(blank, lang=lang, config=_build_config(tessdata_dir))
    except (pytesseract.TesseractError, RuntimeError) as exc:
        raise MissingDependencyError(
            f"Tesseract cannot load '{lang}' from {tessdata_dir}: {exc}"
        ) from exc


def create_worker(
    lang: str,
    lang_path: str,
    client: httpx.Client | None = None,
    download_timeout: float = OCR_DOWNLOAD_TIMEOUT,
) -> TesseractWorker:
    """Initialise a Tesseract worker for *lang* using data at *lang_path*.

    Remote locations are downloaded into a private temporary directory that
    the worker removes on ``terminate()``; local directories are used in
    place. Nothing is left behind when initialisation fails.
    """
    ensure_binaries(["tesseract"])

    if not _is_remote(lang_path):
        tessdata_dir = _local_dir(lang_path)
        if not (tessdata_dir / f"{lang}.traineddata").is_file():
            raise FileNotFoundError(f"{lang}.traineddata not found in {tessdata_dir}")
        _verify_language(lang, tessdata_dir)
        return TesseractWorker(lang, tessdata_dir)

    tessdata_dir = Path(tempfile.mkdtemp(prefix=f"tessdata-{lang}-"))
    try:
        http = client or httpx.Client(timeout=download_timeout, follow_redirects=True)
        try:
            _download_traineddata(lang_path, lang, tessdata_dir, http)
        finally:
            if client is None:
                http.close()
        _verify_language(lang, tessdata_dir)
    except Exception:
        shutil.rmtree(tessdata_dir, ignore_errors=True)
        raise
    return TesseractWorker(lang, tessdata_dir, owns_dir=True)


def load_ocr_worker(
    lang_paths: Sequence[str],
    lang: str,
    factory: WorkerFactory = create_worker,
) -> Any:
    """Return the first worker that initialises, trying *lang_paths* in order."""

    errors: list[tuple[str, BaseException]] = []
    for path in lang_paths:
        try:
            worker = factory(lang, path)
        except Exception as exc:
            logger.warning("Failed to load language data from %s: %s", path, exc)
            errors.append((path, exc))
            continue
        logger.info("Loaded %s language data from %s", lang, path)
        return worker

    last = errors[-1][1] if errors else "no locations configured"
    raise ResourceUnavailableError(
        f"Failed to load {lang} language data for OCR. Last error: {last}", errors,
    )


class WorkerLease:
    """Owns one OCR worker and terminates it exactly once."""

    def __init__(self, worker: Any) -> None:
        self.worker = worker
        self._lock = threading.Lock()
        self._released = False

    @property
    def released(self) -> bool:
        with self._lock:
            return self._released

    def release(self) -> bool:
        """Terminate the worker; return False if it was already released."""
        with self._lock:
            if self._released:
                return False
            self._released = True
        try:
            self.worker.terminate()
        except Exception as exc:
            logger.warning("Error terminating OCR worker: %s", exc)
        return True

    def __enter__(self) -> WorkerLease:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


# ---------------------------------------------------------------------------
# Page recognition
# ---------------------------------------------------------------------------
def _report_progress(progress: ProgressCallback | None, page_number: int, total: int) -> None:
    if progress is None:
        return
    try:
        progress(page_number, total)
    except Exception as exc:
        logger.warning("Progress callback failed on page %d: %s", page_number, exc)


def recognize_page(
    worker: Any,
    doc: Any,
    page_number: int,
    scale: float = OCR_SCALE,
    progress: ProgressCallback | None = None,
) -> PageOutcome:
    """Render one page, OCR it and return its normalized text or the error."""

    _report_progress(progress, page_number, doc.page_count)
    try:
        image = doc.render_page(page_number, scale)
        result = worker.recognize(image)
        text = result.text or ""
    except Exception as exc:
        logger.error("OCR failed on page %d: %s", page_number, exc)
        error = (
            exc if isinstance(exc, PageRecognitionError)
            else PageRecognitionError(f"OCR failed on page {page_number}: {exc}")
        )
        return PageOutcome(page_number=page_number, text="", error=error)
    return PageOutcome(page_number=page_number, text=normalize_nfc(text))


def _ensure_current(should_continue: Callable[[], bool] | None) -> None:
    if should_continue is not None and not should_continue():
        raise RunCancelledError("OCR run was superseded.")


def recognize_pages(
    worker: Any,
    doc: Any,
    scale: float = OCR_SCALE,
    progress: ProgressCallback | None = None,
    should_continue: Callable[[], bool] | None = None,
) -> list[str]:
    """OCR every page in order; one string per page, failed pages empty."""

    outcomes: list[PageOutcome] = []
    for page_number in range(1, doc.page_count + 1):
        _ensure_current(should_continue)
        outcome = recognize_page(worker, doc, page_number, scale=scale, progress=progress)
        _ensure_current(should_continue)
        outcomes.append(outcome)

    failed = [o.page_number for o in outcomes if o.error is not None]
    if failed:
        logger.warning(
            "OCR produced no text for %d of %d pages: %s",
            len(failed), len(outcomes), failed,
        )
    return [o.text for o in outcomes]
