#!/usr/bin/env python3
"""Run extraction on a Myanmar PDF and write the dataset JSON to outputs/."""

from __future__ import annotations

import os
import sys
from pathlib import Path

# Add repo root so pdf_dataset is importable
REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

DEFAULT_PDF = os.environ.get(
    "MYANMAR_SAMPLE_PDF",
    str(Path.home() / "Downloads" / "myanmar-sample.pdf"),
)
OUTPUT_DIR = REPO_ROOT / "outputs"


def main() -> int:
    pdf_path = Path(sys.argv[1] if len(sys.argv) > 1 else DEFAULT_PDF)
    if not pdf_path.is_file():
        print(f"Error: PDF not found: {pdf_path}", file=sys.stderr)
        print("Usage: python scripts/myanmar_sample_extract.py [path/to/myanmar.pdf]", file=sys.stderr)
        return 1

    from pdf_dataset.dataset import dataset_to_json, export_filename
    from pdf_dataset.extract import ExtractionSession

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    print(f"Extracting: {pdf_path} (script=myanmar, force_ocr=True)", file=sys.stderr)
    session = ExtractionSession(
        force_ocr=True,
        on_message=lambda msg: print(msg, file=sys.stderr),
    )
    dataset = session.process(pdf_path.read_bytes(), filename=pdf_path.name)
    out = OUTPUT_DIR / export_filename(pdf_path.name)
    out.write_bytes(dataset_to_json(dataset))
    print(f"Wrote: {out} ({len(dataset)} pages)", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
