# src/paraingest/__init__.py
from .config import IngestConfig
from .exceptions import (
    ParaIngestError,
    DocumentOpenError,
    RasterizationError,
    RecognitionError,
    JobCancelledError,
)
from .models import PageSource, PageTask, PageResult, DocumentResult, Recognition
from .pipeline import PdfPipeline, process_pdf
from .recognizer import TextRecognizer, EngineState

__all__ = [
    "IngestConfig",
    "ParaIngestError",
    "DocumentOpenError",
    "RasterizationError",
    "RecognitionError",
    "JobCancelledError",
    "PageSource",
    "PageTask",
    "PageResult",
    "DocumentResult",
    "Recognition",
    "PdfPipeline",
    "process_pdf",
    "TextRecognizer",
    "EngineState",
]

__version__ = "0.1.0"
