# paraingest/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class PageSource(str, Enum):
    """Where the text of a page came from. Exactly one per page."""
    LAYER = "layer"
    LAYER_OCR = "layer+ocr"
    OCR = "ocr"
    SKIPPED_IMAGE_ONLY = "skipped-image-only"
    EMPTY = "empty"
    ERROR = "error"


@dataclass(frozen=True)
class PageTask:
    """Represents a single page to be processed."""
    source_path: Path
    page_num: int  # 1-based
    total_pages: int


@dataclass(frozen=True)
class Recognition:
    """Output of one OCR call. Confidence is the mean token confidence (0-100)."""
    text: str = ""
    confidence: float = 0.0


@dataclass(frozen=True)
class PageResult:
    """Immutable outcome of one page task."""
    page: int
    source: PageSource
    text: str = ""
    confidence: Optional[float] = None
    error: Optional[str] = None
    # only set on layer+ocr pages
    layer_text: Optional[str] = None
    ocr_text: Optional[str] = None

    def __post_init__(self):
        if self.text is None:
            object.__setattr__(self, "text", "")

    @classmethod
    def failed(cls, page: int, exc: BaseException) -> "PageResult":
        return cls(page=page, source=PageSource.ERROR, text="", error=f"{type(exc).__name__}: {exc}")

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "page": self.page,
            "source": self.source.value,
            "text": self.text,
            "confidence": self.confidence,
        }
        if self.source is PageSource.ERROR:
            d["error"] = self.error or ""
        if self.source is PageSource.LAYER_OCR:
            d["layer_text"] = self.layer_text or ""
            d["ocr_text"] = self.ocr_text or ""
        return d

    def to_record(self) -> Dict[str, Any]:
        """Row for the document store, which keeps confidence as text."""
        return {
            "page": self.page,
            "source": self.source.value,
            "text": self.text,
            "confidence": str(self.confidence) if self.confidence is not None else None,
        }


@dataclass(frozen=True)
class DocumentResult:
    """Represents the final, ordered output for a single PDF."""
    pages: List[PageResult] = field(default_factory=list)
    pages_processed: int = 0
    num_pages: int = 0
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def meta(self) -> Dict[str, Any]:
        return {
            "pages_processed": self.pages_processed,
            "num_pages": self.num_pages,
            "opts": dict(self.options),
        }

    def merged_text(self) -> str:
        """All page texts, ascending by page, one newline between pages."""
        return "\n".join(p.text or "" for p in sorted(self.pages, key=lambda p: p.page))

    def to_dict(self) -> Dict[str, Any]:
        return {"pages": [p.to_dict() for p in self.pages], "meta": self.meta}
