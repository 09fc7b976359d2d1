# paraingest/pipeline.py
from __future__ import annotations

import json
import logging
import threading
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from tqdm import tqdm

from .assembler import assemble_document
from .config import IngestConfig
from .exceptions import JobCancelledError
from .logger import PROGRESS
from .models import DocumentResult, PageResult, PageSource, PageTask, Recognition
from .pdf_processor import BasePDFProcessor, get_pdf_processor, has_text_layer
from .policy import PagePath, choose_path, classify_ocr_text, merge_layer_and_ocr
from .preprocess import ImagePreprocessor
from .recognizer import TextRecognizer
from .workspace import TempWorkspace

logger = logging.getLogger("paraingest")

# Fields read per job. The rest are bound when the pipeline is built.
JOB_OPTIONS = frozenset({
    "augment_if_has_layer",
    "skip_image_only_pages",
    "concurrency",
    "raster_density",
    "temp_root",
    "workspace_prefix",
    "error_log_path",
    "show_progress",
})


class PdfPipeline:
    """
    Turns one PDF into an ordered DocumentResult.

    Each page is read from the embedded text layer when that is enough, and
    rendered and OCR'd otherwise. Pages run on a bounded thread pool. Only a
    document that cannot be opened fails the job, page failures come back as
    pages with source "error".
    """

    def __init__(
        self,
        config: Optional[IngestConfig] = None,
        *,
        recognizer: Optional[TextRecognizer] = None,
        pdf_processor: Optional[BasePDFProcessor] = None,
        preprocessor: Optional[ImagePreprocessor] = None,
    ):
        self.config = config or IngestConfig()
        self.pdf_processor = pdf_processor or get_pdf_processor(self.config.pdf_engine)
        self.preprocessor = preprocessor or ImagePreprocessor(self.config.preprocess_max_width)
        self._owns_recognizer = recognizer is None
        self.recognizer = recognizer or TextRecognizer.from_config(self.config)
        self._error_log_lock = threading.Lock()

    def __enter__(self) -> "PdfPipeline":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def close(self) -> None:
        """Close the recognizer if this pipeline created it."""
        if self._owns_recognizer:
            self.recognizer.close()

    # -----------------------------
    # Logging helpers
    # -----------------------------
    def _log_error(self, config: IngestConfig, source_path: Path, page: int, reason: str):
        if not config.error_log_path:
            return
        try:
            config.error_log_path.parent.mkdir(parents=True, exist_ok=True)
            log_entry = {
                "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
                "source_path": str(source_path),
                "page": page,
                "error_reason": reason,
            }
            with self._error_log_lock, open(config.error_log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(log_entry, ensure_ascii=False) + "\n")
        except Exception:
            logger.exception("Failed to write error log")

    # -----------------------------
    # Config helpers
    # -----------------------------
    def _job_config(self, options: Optional[Dict[str, Any]]) -> IngestConfig:
        if not options:
            return self.config
        unknown = set(options) - set(IngestConfig.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown job options, {sorted(unknown)}")
        bound = set(options) - JOB_OPTIONS
        if bound:
            raise ValueError(
                f"Options fixed when the pipeline is built, not per job, {sorted(bound)}"
            )
        overrides = {k: v for k, v in options.items() if v is not None}
        return replace(self.config, **overrides)

    # -----------------------------
    # Per page work
    # -----------------------------
    def _remove_intermediate(self, *paths: Path):
        for p in set(paths):
            try:
                Path(p).unlink(missing_ok=True)
            except OSError as e:
                logger.debug("Could not remove intermediate image %s, %s", p, e)

    def _ocr_page(self, task: PageTask, workspace: Path, config: IngestConfig) -> Recognition:
        image_path = self.pdf_processor.rasterize_page(
            task.source_path, task.page_num, workspace, config.raster_density
        )
        prepared = image_path
        try:
            prepared = self.preprocessor(image_path)
            return self.recognizer.recognize(prepared)
        finally:
            self._remove_intermediate(image_path, prepared)

    def _run_page(self, doc: Any, task: PageTask, workspace: Path, config: IngestConfig) -> PageResult:
        layer_text = self.pdf_processor.extract_layer_text(doc, task.page_num)
        path = choose_path(
            has_text_layer(layer_text),
            config.skip_image_only_pages,
            config.augment_if_has_layer,
        )

        if path is PagePath.LAYER:
            return PageResult(page=task.page_num, source=PageSource.LAYER, text=layer_text)
        if path is PagePath.SKIP_IMAGE_ONLY:
            return PageResult(page=task.page_num, source=PageSource.SKIPPED_IMAGE_ONLY)

        recognition = self._ocr_page(task, workspace, config)
        if path is PagePath.LAYER_AND_OCR:
            return PageResult(
                page=task.page_num,
                source=PageSource.LAYER_OCR,
                text=merge_layer_and_ocr(layer_text, recognition.text),
                confidence=recognition.confidence,
                layer_text=layer_text,
                ocr_text=recognition.text,
            )
        return PageResult(
            page=task.page_num,
            source=classify_ocr_text(recognition.text),
            text=recognition.text,
            confidence=recognition.confidence,
        )

    def _process_page(self, doc: Any, task: PageTask, workspace: Path, config: IngestConfig) -> PageResult:
        """Never raises for ordinary failures, they become an error page."""
        try:
            return self._run_page(doc, task, workspace, config)
        except Exception as e:
            logger.error(
                "Page %d/%d of %s failed, %s",
                task.page_num, task.total_pages, task.source_path.name, e,
            )
            result = PageResult.failed(task.page_num, e)
            self._log_error(config, task.source_path, task.page_num, result.error)
            return result

    # -----------------------------
    # Fan out, fan in
    # -----------------------------
    def _process_pages(
        self,
        doc: Any,
        tasks: List[PageTask],
        workspace: Path,
        config: IngestConfig,
        cancel_event: Optional[threading.Event],
    ) -> List[PageResult]:
        results: List[PageResult] = []
        pending = deque(tasks)
        in_flight: Dict[Future, PageTask] = {}
        cancelled = False
        total = len(tasks)

        with ThreadPoolExecutor(max_workers=config.concurrency, thread_name_prefix="paraingest-page") as pool, \
                tqdm(total=total, desc="Processing pages", disable=not config.show_progress) as pbar:
            while pending or in_flight:
                # Keep at most `concurrency` pages in flight
                while pending and len(in_flight) < config.concurrency:
                    if cancel_event is not None and cancel_event.is_set():
                        logger.warning("Cancel requested, no more pages will be dispatched")
                        pending.clear()
                        cancelled = True
                        break
                    task = pending.popleft()
                    in_flight[pool.submit(self._process_page, doc, task, workspace, config)] = task

                if not in_flight:
                    break

                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for fut in done:
                    in_flight.pop(fut)
                    results.append(fut.result())
                    pbar.update(1)
                    logger.log(
                        PROGRESS, "page done",
                        extra={"phase": "pages", "current": len(results), "total": total},
                    )

        if cancelled:
            raise JobCancelledError(f"Job cancelled after {len(results)} of {total} pages")
        return results

    # -----------------------------
    # Public entry point
    # -----------------------------
    def run(
        self,
        pdf_path: Union[str, Path],
        options: Optional[Dict[str, Any]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> DocumentResult:
        """
        Process one PDF. `options` overrides the JOB_OPTIONS fields of
        IngestConfig for this job only, other fields raise ValueError.

        Raises DocumentOpenError when the file cannot be opened and
        JobCancelledError when cancel_event was set before all pages ran.
        The temp workspace and the document handle are released either way.
        """
        config = self._job_config(options)
        source_path = Path(pdf_path)
        start = time.perf_counter()
        logger.info(
            "Job started, %s, concurrency %d, density %d",
            source_path.name, config.concurrency, config.raster_density,
        )

        with TempWorkspace(config.workspace_prefix, config.temp_root) as workspace:
            doc = self.pdf_processor.open_document(source_path)
            try:
                num_pages = self.pdf_processor.page_count(doc)
                if num_pages <= 0:
                    logger.info("%s has no pages", source_path.name)
                    return assemble_document([], 0, config.options())

                tasks = [PageTask(source_path, i, num_pages) for i in range(1, num_pages + 1)]
                results = self._process_pages(doc, tasks, workspace, config, cancel_event)
            finally:
                self.pdf_processor.close_document(doc)

        document = assemble_document(results, num_pages, config.options())
        errors = sum(1 for p in document.pages if p.source is PageSource.ERROR)
        logger.info(
            "Job finished, %s, %d pages, %d errors, %.2fs",
            source_path.name, num_pages, errors, time.perf_counter() - start,
        )
        return document


def process_pdf(
    pdf_path: Union[str, Path],
    options: Optional[Dict[str, Any]] = None,
    *,
    config: Optional[IngestConfig] = None,
    recognizer: Optional[TextRecognizer] = None,
    cancel_event: Optional[threading.Event] = None,
) -> DocumentResult:
    """
    One-shot helper. Pass a long-lived recognizer to reuse the OCR engine
    across calls, otherwise one is created and closed for this call.
    """
    with PdfPipeline(config, recognizer=recognizer) as pipeline:
        return pipeline.run(pdf_path, options, cancel_event=cancel_event)
