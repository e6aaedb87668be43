"""FastAPI app for PDF → dataset extraction."""

from __future__ import annotations

import io

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response

from .config import (
    MAX_FILE_SIZE_BYTES,
    OCR_SCALE,
    PDF_MIME_TYPE,
    UPLOAD_CHUNK_SIZE,
    log_startup_config,
)
from .dataset import dataset_to_json, export_filename
from .extract import ExtractionSession
from .utils import (
    CorruptDocumentError,
    ExtractionError,
    InvalidInputError,
    OcrUnavailableError,
    SessionBusyError,
)

app = FastAPI(title="Myanmar PDF Dataset")

# Module-level session shared by all requests; one document at a time.
session = ExtractionSession()

_INVALID_INPUT_STATUS = {
    "wrong_type": 415,
    "too_large": 413,
    "empty": 400,
}


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------
@app.on_event("startup")
def _startup() -> None:
    log_startup_config()


# ---------------------------------------------------------------------------
# Global error handler
# ---------------------------------------------------------------------------
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request, exc: Exception):  # noqa: ARG001
    if isinstance(exc, HTTPException):
        raise exc
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc) or "Internal server error"},
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _status_for(exc: ExtractionError) -> int:
    if isinstance(exc, InvalidInputError):
        return _INVALID_INPUT_STATUS.get(exc.reason, 400)
    if isinstance(exc, SessionBusyError):
        return 409
    if isinstance(exc, CorruptDocumentError):
        return 422
    if isinstance(exc, OcrUnavailableError):
        return 503
    return 500


async def _read_upload(file: UploadFile) -> bytes:
    """Read *file* in chunks, stopping once it is past the size limit."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided.")
    buffer = io.BytesIO()
    total = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        buffer.write(chunk)
        if total > MAX_FILE_SIZE_BYTES:
            break
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Health / config
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/config")
async def api_config():
    """Expose upload limits and OCR settings to the frontend."""
    return {
        "max_file_size_bytes": MAX_FILE_SIZE_BYTES,
        "accepted_mime_type": PDF_MIME_TYPE,
        "ocr_script": session.profile.id,
        "ocr_lang_paths": session.lang_paths,
        "ocr_scale": OCR_SCALE,
    }


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------
@app.post("/api/extract")
async def extract_endpoint(file: UploadFile = File(...)):
    """Process an uploaded PDF and return the session state with its dataset."""
    data = await _read_upload(file)
    try:
        await run_in_threadpool(
            session.process, data, filename=file.filename, content_type=file.content_type,
        )
    except ExtractionError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=exc.user_message) from exc
    return session.snapshot().model_dump(mode="json", by_alias=True)


@app.get("/api/status")
async def status_endpoint():
    return session.snapshot().model_dump(mode="json", by_alias=True)


@app.get("/api/pages/{page_number}")
async def page_endpoint(page_number: int):
    """Preview one processed page as its non-blank lines."""
    try:
        rows = session.page_preview(page_number)
    except IndexError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"page_number": page_number, "rows": rows}


@app.get("/api/export")
async def export_endpoint():
    """Download the current dataset as a JSON file."""
    snapshot = session.snapshot()
    if not snapshot.pages:
        raise HTTPException(
            status_code=404,
            detail="No data to export. Please process a PDF file first.",
        )
    filename = export_filename(snapshot.filename)
    return Response(
        content=dataset_to_json(snapshot.pages),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/reset")
async def reset_endpoint():
    session.reset()
    return session.snapshot().model_dump(mode="json", by_alias=True)
