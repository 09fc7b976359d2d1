# src/paraingest/assembler.py
from __future__ import annotations

from typing import Any, Dict, Iterable

from .models import DocumentResult, PageResult


def assemble_document(page_results: Iterable[PageResult], num_pages: int, options: Dict[str, Any]) -> DocumentResult:
    """Order page results by page number and attach the run summary. No I/O."""
    pages = sorted(page_results, key=lambda r: r.page)
    return DocumentResult(
        pages=pages,
        pages_processed=len(pages),
        num_pages=int(num_pages),
        options=dict(options),
    )
