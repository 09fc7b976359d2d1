# src/paraingest/cli.py
from __future__ import annotations

import argparse
import ast
import importlib
import json
import logging
import re
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from .config import IngestConfig, default_concurrency
from .exceptions import DocumentOpenError, JobCancelledError
from .logger import setup_logging
from .pipeline import PdfPipeline

__all__ = ["main"]

logger = logging.getLogger("paraingest")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130

_BACKEND_ALIASES = {
    "tess": "paraingest.ocr_backends.tesseract_backend.TesseractOCREngine",
    "tesseract": "paraingest.ocr_backends.tesseract_backend.TesseractOCREngine",
    "pytesseract": "paraingest.ocr_backends.tesseract_backend.TesseractOCREngine",
    "easy": "paraingest.ocr_backends.easyocr_backend.EasyOCREngine",
    "easyocr": "paraingest.ocr_backends.easyocr_backend.EasyOCREngine",
}


# Helpers

def _parse_backend_kwargs(val) -> dict:
    """
    Accept several syntaxes for --ocr-backend-kwargs:
      1) JSON                                      {"languages":["en"],"psm":6}
      2) Python-literal dict with single quotes    {'languages': ['en'], 'psm': 6}
      3) key=value pairs separated by ;            languages=en,fr;psm=6
    """
    if isinstance(val, dict):
        return dict(val)
    if not isinstance(val, str) or not val.strip():
        return {}

    s = val.strip()
    # Strip outer quotes like '"{...}"' or "'{...}'"
    if len(s) >= 2 and s[0] in ("'", '"') and s[-1] == s[0]:
        s = s[1:-1].strip()

    try:
        parsed = json.loads(s)
        if isinstance(parsed, dict):
            return parsed
    except ValueError:
        pass

    try:
        lit = ast.literal_eval(s)
        if isinstance(lit, dict):
            return lit
    except (ValueError, SyntaxError, TypeError):
        pass

    out: dict = {}
    for part in re.split(r";\s*", s):
        if "=" not in part:
            continue
        k, v = part.split("=", 1)
        k = k.strip().strip("\"'").lower().replace("-", "_")
        v = v.strip().strip("\"'")

        if "," in v:
            out[k] = [x.strip() for x in v.split(",") if x.strip()]
            continue
        low = v.lower()
        if low in ("true", "false"):
            out[k] = low == "true"
        elif re.fullmatch(r"-?\d+", v):
            out[k] = int(v)
        elif re.fullmatch(r"-?\d+\.\d*", v):
            out[k] = float(v)
        else:
            out[k] = v

    if out:
        return out
    raise SystemExit(f"Invalid --ocr-backend-kwargs. Could not parse: {val!r}")


def _normalize_backend_alias(name: str) -> str:
    """Allow short aliases (case-insensitive), return a dotted 'module.Class' path."""
    original = (name or "").strip().strip("\"'")
    return _BACKEND_ALIASES.get(original.lower(), original)


def _preflight_backend_import(dotted: str) -> None:
    """
    Import the backend class now, so a typo fails fast with a clear message
    instead of silently disabling OCR on the first scanned page.
    """
    try:
        module_path, cls_name = dotted.rsplit(".", 1)
    except ValueError:
        raise SystemExit(f"--ocr-backend must be 'module.Class' or an alias, got: {dotted!r}")

    try:
        mod = importlib.import_module(module_path)
    except Exception as e:
        raise SystemExit(f"Cannot import backend module: {module_path!r} ({e})")

    if not hasattr(mod, cls_name):
        raise SystemExit(
            f"Backend class not found: {dotted}\n"
            f"- Tesseract: {_BACKEND_ALIASES['tesseract']}\n"
            f"- EasyOCR:   {_BACKEND_ALIASES['easyocr']}"
        )


def _install_signal_handlers(cancel_event: threading.Event) -> None:
    """First signal asks for a cooperative cancel, a second one exits at once."""
    def _handler(signum, frame):
        if not cancel_event.is_set():
            logger.warning("Shutdown signal received! Finishing in-flight pages before exiting.")
            cancel_event.set()
        else:
            logger.error("Second shutdown signal received! Forcing an immediate exit.")
            sys.exit(EXIT_CANCELLED)

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def _write_output(document, output_path: Path, export_txt: bool) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(document.to_dict(), f, ensure_ascii=False, indent=2)
    logger.info("Wrote %s", output_path)

    if export_txt:
        txt_path = output_path.with_suffix(".txt")
        txt_path.write_text(document.merged_text(), encoding="utf-8")
        logger.info("Wrote %s", txt_path)


# -------------------------------
# CLI parsing
# -------------------------------

def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="paraingest",
        description="Extract per-page text from a PDF, using OCR only where the text layer falls short.",
    )
    p.add_argument("input", type=Path, help="PDF file to process")
    p.add_argument(
        "-o", "--output-path", type=Path,
        help="Output JSON path (default: <input>.json next to the PDF)",
    )

    policy = p.add_argument_group("Page policy")
    policy.add_argument(
        "--augment-if-has-layer", action="store_true",
        help="Also OCR pages that already have a text layer and merge both texts",
    )
    policy.add_argument(
        "--no-skip-image-only", dest="skip_image_only_pages", action="store_false",
        help="OCR pages without a text layer instead of skipping them",
    )
    p.set_defaults(skip_image_only_pages=True)

    runtime = p.add_argument_group("Runtime")
    runtime.add_argument(
        "-c", "--concurrency", type=int,
        help=f"Pages processed at once (default: {default_concurrency()})",
    )
    runtime.add_argument("-d", "--dpi", dest="raster_density", type=int, help="Render density for OCR (default: 200)")
    runtime.add_argument("--temp-root", type=Path, help="Parent directory for per-job temp folders")
    runtime.add_argument("--no-progress", dest="show_progress", action="store_false", help="Hide the progress bar")
    p.set_defaults(show_progress=True)

    ocr = p.add_argument_group("OCR")
    ocr.add_argument(
        "--ocr-backend", type=str, default="tesseract",
        help="Backend alias (tesseract, easyocr) or dotted path to an OCR backend class",
    )
    ocr.add_argument(
        "--ocr-backend-kwargs", type=str, default="{}",
        help='Backend init kwargs as JSON or key=value pairs, e.g. \'{"psm":6}\' or psm=6;oem=1',
    )
    ocr.add_argument("-l", "--languages", nargs="+", help="Language codes for OCR (default: en)")

    out = p.add_argument_group("Output & logs")
    out.add_argument("--export-txt", action="store_true", help="Also write the merged text to <output>.txt")
    out.add_argument("--error-log-path", type=Path, help="Append page errors to this JSONL file")
    out.add_argument("--log-file", type=Path, help="Write a rotating log file")
    out.add_argument("-v", "--verbose", action="store_true", help="Debug logging on the console")
    return p


def _config_from_args(args: argparse.Namespace) -> IngestConfig:
    backend = _normalize_backend_alias(args.ocr_backend)
    _preflight_backend_import(backend)

    cfg_dict = {
        "augment_if_has_layer": args.augment_if_has_layer,
        "skip_image_only_pages": args.skip_image_only_pages,
        "concurrency": args.concurrency,
        "raster_density": args.raster_density,
        "temp_root": args.temp_root,
        "ocr_backend": backend,
        "ocr_backend_kwargs": _parse_backend_kwargs(args.ocr_backend_kwargs),
        "languages": args.languages,
        "error_log_path": args.error_log_path,
        "show_progress": args.show_progress,
    }
    return IngestConfig.from_dict(cfg_dict)


# -------------------------------
# Entry point
# -------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        file_path=args.log_file,
        file_level=logging.DEBUG,
    )

    config = _config_from_args(args)
    output_path = args.output_path or args.input.with_suffix(".json")

    cancel_event = threading.Event()
    if threading.current_thread() is threading.main_thread():
        _install_signal_handlers(cancel_event)

    try:
        with PdfPipeline(config) as pipeline:
            document = pipeline.run(args.input, cancel_event=cancel_event)
    except DocumentOpenError as e:
        logger.error("Cannot process %s, %s", args.input, e)
        return EXIT_FAILED
    except JobCancelledError as e:
        logger.warning("%s", e)
        return EXIT_CANCELLED

    _write_output(document, output_path, args.export_txt)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
