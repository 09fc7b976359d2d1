# src/paraingest/recognizer.py
from __future__ import annotations

import importlib
import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from .exceptions import RecognitionError
from .models import Recognition
from .ocr_backends.base import BaseOCREngine

logger = logging.getLogger("paraingest")


class EngineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    DISABLED = "disabled"


def import_backend(dotted: str):
    """Resolve a 'module.Class' path to the class object."""
    mod_path, _, attr = dotted.rpartition(".")
    if not mod_path or not attr:
        raise ImportError(f"Invalid backend path, {dotted}")
    mod = importlib.import_module(mod_path)
    try:
        return getattr(mod, attr)
    except AttributeError as e:
        raise ImportError(f"Backend class not found, {dotted}") from e


class TextRecognizer:
    """
    Owns one OCR engine and its lifecycle.

    The engine is created lazily on the first recognize() call. Concurrent
    callers that arrive while it is being created wait for that same attempt.
    Any failure, at creation or during a later read, disables the recognizer
    for good: from then on every call returns an empty Recognition at once.

    Create one instance per process and share it between jobs; tests build
    their own instances around fake engine factories.
    """

    def __init__(self, engine_factory: Callable[[], BaseOCREngine], name: Optional[str] = None):
        self._engine_factory = engine_factory
        self.name = name or getattr(engine_factory, "__name__", "engine")
        self._engine: Optional[BaseOCREngine] = None
        self._state = EngineState.UNINITIALIZED
        self._cond = threading.Condition()
        # serializes read() on engines that are not thread safe
        self._call_lock = threading.Lock()
        self.disabled_reason: Optional[str] = None

    @classmethod
    def from_backend(cls, backend_path: str, backend_kwargs: Optional[Dict[str, Any]] = None) -> "TextRecognizer":
        kwargs = dict(backend_kwargs or {})

        def _factory() -> BaseOCREngine:
            EngineCls = import_backend(backend_path)
            return EngineCls(**kwargs)

        return cls(_factory, name=backend_path)

    @classmethod
    def from_config(cls, config) -> "TextRecognizer":
        kw = dict(config.ocr_backend_kwargs or {})
        if "languages" not in kw and "lang" not in kw:
            kw["languages"] = list(config.languages)
        return cls.from_backend(config.ocr_backend, kw)

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def available(self) -> bool:
        return self._state is not EngineState.DISABLED

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def initialize(self) -> bool:
        """Create the engine once. Returns True when the recognizer is ready."""
        with self._cond:
            while self._state is EngineState.INITIALIZING:
                self._cond.wait()
            if self._state is EngineState.READY:
                return True
            if self._state is EngineState.DISABLED:
                return False
            self._state = EngineState.INITIALIZING

        engine: Optional[BaseOCREngine] = None
        reason = "initialization interrupted"
        try:
            engine = self._create_engine()
        except RecognitionError as e:
            reason = str(e)
            logger.error("OCR disabled, %s", e)
        finally:
            with self._cond:
                if engine is not None:
                    self._engine = engine
                    self._state = EngineState.READY
                    logger.info("OCR engine ready, %s", self.name)
                else:
                    self._state = EngineState.DISABLED
                    self.disabled_reason = reason
                self._cond.notify_all()
        return engine is not None

    def _create_engine(self) -> BaseOCREngine:
        try:
            return self._engine_factory()
        except Exception as e:
            raise RecognitionError(f"failed to initialize OCR engine {self.name}, {e}") from e

    def _disable(self, reason: str) -> None:
        with self._cond:
            if self._state is EngineState.DISABLED:
                return
            self._state = EngineState.DISABLED
            self.disabled_reason = reason
            self._engine = None
            self._cond.notify_all()
        logger.error("OCR disabled for the rest of this process, %s", reason)

    def close(self) -> None:
        """Release the engine. The recognizer stays disabled afterwards."""
        with self._cond:
            while self._state is EngineState.INITIALIZING:
                self._cond.wait()
            engine, self._engine = self._engine, None
            if self._state is not EngineState.DISABLED:
                self._state = EngineState.DISABLED
                self.disabled_reason = "closed"
            self._cond.notify_all()
        if engine is not None:
            try:
                engine.close()
            except Exception as e:
                logger.warning("Failed to close OCR engine %s, %s", self.name, e)

    # -----------------------------
    # Recognition
    # -----------------------------
    def _read(self, engine: BaseOCREngine, image_path: Path):
        try:
            if engine.thread_safe:
                return engine.read(image_path)
            with self._call_lock:
                return engine.read(image_path)
        except Exception as e:
            raise RecognitionError(f"recognition failed on {Path(image_path).name}, {e}") from e

    def recognize(self, image_path: Union[str, Path]) -> Recognition:
        if self._state is EngineState.DISABLED:
            return Recognition()
        if not self.initialize():
            return Recognition()

        engine = self._engine
        if engine is None:
            # closed or disabled by another thread in the meantime
            return Recognition()

        try:
            text, confidences = self._read(engine, Path(image_path))
        except RecognitionError as e:
            self._disable(str(e))
            return Recognition()

        confidences = [float(c) for c in (confidences or [])]
        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return Recognition(text=(text or "").strip(), confidence=confidence)

    __call__ = recognize
