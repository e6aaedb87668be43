"""Command-line interface for PDF → dataset extraction."""

from __future__ import annotations

import argparse
import logging
import mimetypes
import sys
from pathlib import Path

from .config import OCR_SCALE, OCR_SCRIPT, PDF_MIME_TYPE
from .dataset import dataset_to_json
from .extract import ExtractionSession
from .ocr_router import resolve_script_profile
from .utils import ExtractionError


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""

    parser = argparse.ArgumentParser(
        description="Extract a Myanmar PDF page by page into a JSON row dataset."
    )
    parser.add_argument("pdf_path", help="Path to the PDF file.")
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        metavar="FILE",
        help="Write the dataset JSON to FILE (default: stdout).",
    )
    parser.add_argument(
        "--script",
        type=str,
        default=OCR_SCRIPT,
        help=f"Target script for detection and OCR (default: {OCR_SCRIPT}).",
    )
    parser.add_argument(
        "--lang-path",
        action="append",
        default=None,
        metavar="URL_OR_DIR",
        help="Language-data location to try for OCR. Repeat to set the order.",
    )
    parser.add_argument(
        "--scale",
        type=float,
        default=OCR_SCALE,
        help=f"Render scale for OCR (default: {OCR_SCALE}).",
    )
    parser.add_argument(
        "--force-ocr",
        action="store_true",
        help="Always run OCR, even if the text layer contains the target script.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log pipeline decisions to stderr.",
    )
    return parser


def _content_type(path: Path) -> str | None:
    if path.suffix.lower() == ".pdf":
        return PDF_MIME_TYPE
    return mimetypes.guess_type(path.name)[0]


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        pdf_path = Path(args.pdf_path).expanduser()
        if not pdf_path.is_file():
            print(f"Error: PDF not found: {pdf_path}", file=sys.stderr)
            return 1

        session = ExtractionSession(
            profile=resolve_script_profile(args.script),
            lang_paths=args.lang_path,
            scale=args.scale,
            force_ocr=args.force_ocr,
            on_message=lambda msg: print(msg, file=sys.stderr),
        )
        dataset = session.process(
            pdf_path.read_bytes(),
            filename=pdf_path.name,
            content_type=_content_type(pdf_path),
        )
        payload = dataset_to_json(dataset)
        if args.output:
            Path(args.output).write_bytes(payload)
            print(f"Dataset written to {args.output}", file=sys.stderr)
        else:
            sys.stdout.write(payload.decode("utf-8") + "\n")
        return 0
    except ExtractionError as exc:
        print(f"Error: {exc.user_message}", file=sys.stderr)
        return 1
    except Exception as exc:  # pragma: no cover - safety net
        print(f"Unexpected error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
