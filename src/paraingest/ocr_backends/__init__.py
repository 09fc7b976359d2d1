# paraingest/ocr_backends/__init__.py
from .base import BaseOCREngine

__all__ = ["BaseOCREngine"]
