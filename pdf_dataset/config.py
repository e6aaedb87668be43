"""Centralized configuration for upload limits and OCR runtime settings.

All env-driven settings live here so there is a single source of truth.
Import from ``pdf_dataset.config`` in api.py, extract.py, ocr.py, etc.
"""

from __future__ import annotations

import os
import sys


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes")


def _env_int(name: str, default: int, lo: int = 1, hi: int = 10_000) -> int:
    try:
        return max(lo, min(hi, int(os.environ.get(name, str(default)))))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float, lo: float = 0.1, hi: float = 10.0) -> float:
    try:
        return max(lo, min(hi, float(os.environ.get(name, str(default)))))
    except (TypeError, ValueError):
        return default


def _env_list(name: str) -> list[str]:
    raw = os.environ.get(name, "")
    return [part.strip() for part in raw.split(",") if part.strip()]


# ---------------------------------------------------------------------------
# Upload limits
# ---------------------------------------------------------------------------
PDF_MIME_TYPE = "application/pdf"
MAX_FILE_SIZE_BYTES: int = _env_int(
    "MAX_FILE_SIZE_BYTES", default=20 * 1024 * 1024, lo=1, hi=500 * 1024 * 1024,
)
UPLOAD_CHUNK_SIZE: int = 64 * 1024  # 64 KiB streaming chunks

# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------
EXTRACT_FORM_FIELDS: bool = _env_bool("EXTRACT_FORM_FIELDS", default=True)
RENDER_ANNOTATIONS: bool = _env_bool("RENDER_ANNOTATIONS", default=True)

# ---------------------------------------------------------------------------
# OCR fallback
# ---------------------------------------------------------------------------
OCR_SCRIPT: str = os.environ.get("OCR_SCRIPT", "myanmar").strip().lower()
# Overrides the script profile's default language-data locations when set.
OCR_LANG_PATHS: list[str] = _env_list("OCR_LANG_PATHS")
# Local tessdata directory tried before any remote location.
TESSDATA_DIR: str | None = os.environ.get("TESSDATA_DIR", "").strip() or None
OCR_SCALE: float = _env_float("OCR_SCALE", default=2.0, lo=0.5, hi=8.0)
OCR_OEM: int = _env_int("OCR_OEM", default=1, lo=0, hi=3)
OCR_PSM: int = _env_int("OCR_PSM", default=3, lo=0, hi=13)
OCR_PAGE_TIMEOUT: int = _env_int("OCR_PAGE_TIMEOUT", default=0, lo=0, hi=3600)
OCR_DOWNLOAD_TIMEOUT: float = _env_float("OCR_DOWNLOAD_TIMEOUT", default=30.0, lo=1.0, hi=600.0)
OCR_PREPROCESS: bool = _env_bool("OCR_PREPROCESS")


def log_startup_config() -> None:
    """Write one startup line summarising active configuration."""
    msg = (
        f"PDF dataset config: MAX_FILE_SIZE_BYTES={MAX_FILE_SIZE_BYTES} "
        f"OCR_SCRIPT={OCR_SCRIPT} OCR_SCALE={OCR_SCALE} "
        f"OCR_OEM={OCR_OEM} OCR_PSM={OCR_PSM} "
        f"OCR_LANG_PATHS={','.join(OCR_LANG_PATHS) or 'default'} "
        f"TESSDATA_DIR={TESSDATA_DIR} OCR_PREPROCESS={OCR_PREPROCESS} "
        f"EXTRACT_FORM_FIELDS={EXTRACT_FORM_FIELDS}"
    )
    sys.stderr.write(msg + "\n")
    sys.stderr.flush()
