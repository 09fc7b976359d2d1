# src/paraingest/pdf_processor.py
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Union

import fitz  # PyMuPDF

from .exceptions import DocumentOpenError, RasterizationError

logger = logging.getLogger("paraingest")

# A page "has a text layer" only when its trimmed layer text is longer than this.
LAYER_TEXT_MIN_CHARS = 20

# MuPDF is not thread safe, every call into it goes through this lock
MUPDF_LOCK = threading.RLock()


def has_text_layer(layer_text: str) -> bool:
    return len((layer_text or "").strip()) > LAYER_TEXT_MIN_CHARS


# --- Step 1, interface ---
class BasePDFProcessor(ABC):
    """
    Interface for any PDF processing engine.
    Page numbers are 1-based everywhere in this interface.
    """

    @abstractmethod
    def open_document(self, file_path: Path) -> Any:
        """Opens a PDF once for a job. Raises DocumentOpenError when it cannot."""
        raise NotImplementedError

    @abstractmethod
    def page_count(self, doc: Any) -> int:
        raise NotImplementedError

    @abstractmethod
    def extract_layer_text(self, doc: Any, page_num: int) -> str:
        """Returns the embedded text of one page, trimmed, without rendering it."""
        raise NotImplementedError

    @abstractmethod
    def rasterize_page(self, file_path: Path, page_num: int, out_dir: Path, dpi: int) -> Path:
        """Renders one page to a PNG inside out_dir and returns its path."""
        raise NotImplementedError

    @abstractmethod
    def close_document(self, doc: Any) -> None:
        raise NotImplementedError


# --- Step 2, concrete implementation with PyMuPDF ---
class PyMuPDFProcessor(BasePDFProcessor):
    """PDF processor that uses PyMuPDF."""

    def open_document(self, file_path: Union[str, Path]) -> fitz.Document:
        path = Path(file_path)
        if not path.is_file():
            raise DocumentOpenError(f"PDF not found or not a file, {path}")
        try:
            with MUPDF_LOCK:
                doc = fitz.open(path)
        except Exception as e:
            raise DocumentOpenError(f"Failed to open {path.name}, {e}") from e

        if not doc.is_pdf or doc.needs_pass:
            reason = "not a PDF" if not doc.is_pdf else "encrypted"
            self.close_document(doc)
            raise DocumentOpenError(f"Cannot process {path.name}, {reason}")
        return doc

    def page_count(self, doc: fitz.Document) -> int:
        with MUPDF_LOCK:
            return doc.page_count

    def extract_layer_text(self, doc: fitz.Document, page_num: int) -> str:
        """
        Concatenate every text span of the page in content stream order.
        No sorting, this is the order the PDF producer wrote the text in.
        """
        with MUPDF_LOCK:
            page = doc.load_page(page_num - 1)
            data = page.get_text("dict")

        parts = []
        for block in data.get("blocks", []):
            # type 0 is a text block, 1 is an image block
            if block.get("type", 0) != 0:
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    if span.get("text"):
                        parts.append(span["text"])
        return " ".join(parts).strip()

    def rasterize_page(self, file_path: Union[str, Path], page_num: int, out_dir: Path, dpi: int = 200) -> Path:
        """
        Render one page to a PNG image on disk and return the path.
        Uses its own document handle so it only depends on the file path.
        """
        out_dir = Path(out_dir)
        out_path = out_dir / f"page_{page_num}.png"
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
            # Prefer matrix-based scaling (consistent across PyMuPDF versions)
            zoom = dpi / 72.0
            with MUPDF_LOCK:
                with fitz.open(file_path) as doc:
                    page = doc.load_page(page_num - 1)
                    pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
                    pix.save(str(out_path))
        except Exception as e:
            raise RasterizationError(f"Failed to render page {page_num} of {Path(file_path).name}, {e}") from e
        return out_path

    def close_document(self, doc: fitz.Document) -> None:
        try:
            with MUPDF_LOCK:
                doc.close()
        except Exception as e:
            logger.warning("Failed to close PDF document, %s", e)


# --- Step 3, factory ---
def get_pdf_processor(engine_name: str = "pymupdf") -> BasePDFProcessor:
    """
    Create a PDF processor by name.
    """
    name = (engine_name or "").lower()
    if name == "pymupdf":
        return PyMuPDFProcessor()
    raise ValueError(f"Unknown PDF engine, '{engine_name}'. Supported engines, ['pymupdf']")
