"""
Shared fixtures: PDFs built on the fly with PyMuPDF and fake OCR engines,
so no tesseract binary or model download is needed.
"""
import logging
import threading
import time
from pathlib import Path

import fitz
import pytest

from paraingest.config import IngestConfig
from paraingest.ocr_backends.base import BaseOCREngine
from paraingest.pdf_processor import PyMuPDFProcessor
from paraingest.recognizer import TextRecognizer

LAYER_TEXT = "This page carries a proper embedded text layer."


@pytest.fixture(autouse=True)
def reset_paraingest_logger():
    """The CLI reconfigures the package logger; undo that between tests."""
    yield
    lg = logging.getLogger("paraingest")
    for handler in list(lg.handlers):
        handler.close()
    lg.handlers.clear()
    lg.propagate = True
    lg.setLevel(logging.NOTSET)


@pytest.fixture
def make_pdf(tmp_path):
    """
    Build a PDF where each entry is the text layer of one page.
    None makes a blank page, which has no text layer at all.
    """
    def _make(pages, name="doc.pdf"):
        path = tmp_path / name
        doc = fitz.open()
        for text in pages:
            page = doc.new_page(width=612, height=792)
            if text:
                page.insert_text((72, 72), text, fontsize=11)
        doc.save(path)
        doc.close()
        return path
    return _make


class FakeEngine(BaseOCREngine):
    """Returns canned text, counts calls and the peak number of parallel reads."""

    thread_safe = True

    def __init__(self, text="recognized words", confidences=(90.0, 80.0), delay=0.0, fail_on_call=None):
        self.text = text
        self.confidences = list(confidences)
        self.delay = delay
        self.fail_on_call = fail_on_call
        self.calls = 0
        self.paths = []
        self.active = 0
        self.max_active = 0
        self.closed = False
        self._lock = threading.Lock()

    def read(self, image_path):
        with self._lock:
            self.calls += 1
            call_no = self.calls
            self.paths.append(Path(image_path))
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.fail_on_call is not None and call_no >= self.fail_on_call:
                raise RuntimeError("engine crashed")
            return self.text, list(self.confidences)
        finally:
            with self._lock:
                self.active -= 1

    def close(self):
        self.closed = True


class SpyProcessor(PyMuPDFProcessor):
    """Real PyMuPDF processor that records renders and can fail chosen pages."""

    def __init__(self, fail_pages=()):
        self.fail_pages = set(fail_pages)
        self.rendered = []
        self.closed = 0
        self._lock = threading.Lock()

    def rasterize_page(self, file_path, page_num, out_dir, dpi=200):
        with self._lock:
            self.rendered.append(page_num)
        if page_num in self.fail_pages:
            from paraingest.exceptions import RasterizationError
            raise RasterizationError(f"injected failure on page {page_num}")
        return super().rasterize_page(file_path, page_num, out_dir, dpi)

    def close_document(self, doc):
        self.closed += 1
        super().close_document(doc)


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def recognizer(fake_engine):
    return TextRecognizer(lambda: fake_engine, name="fake")


@pytest.fixture
def work_root(tmp_path):
    root = tmp_path / "work"
    root.mkdir()
    return root


@pytest.fixture
def config(work_root):
    return IngestConfig(temp_root=work_root, concurrency=2, raster_density=72)
