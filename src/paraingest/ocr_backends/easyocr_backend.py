# paraingest/ocr_backends/easyocr_backend.py
from __future__ import annotations

from typing import Any, Dict, Iterator, List, Tuple
import os
import time
import logging
import warnings
from contextlib import contextmanager
from pathlib import Path

import numpy as np
from PIL import Image

import easyocr

from .base import BaseOCREngine

logger = logging.getLogger("paraingest")


# -----------------------------
# Helpers
# -----------------------------

def _as_bool(x, default=True) -> bool:
    if isinstance(x, bool):
        return x
    if isinstance(x, str):
        s = x.strip().lower()
        if s in ("true", "1", "yes", "y", "on"):
            return True
        if s in ("false", "0", "no", "n", "off"):
            return False
    return default


def _norm_langs_to_easyocr(kwargs: Dict[str, Any]) -> Dict[str, Any]:
    """Accept languages or lang and normalize to a list for EasyOCR."""
    k = dict(kwargs or {})
    langs = k.pop("languages", None) or k.pop("lang", None)
    if isinstance(langs, str):
        langs = [langs]
    if not langs:
        langs = ["en"]
    k["languages"] = [str(l).strip() for l in langs if l]
    return k


def _load_rgb(image_path: Path) -> np.ndarray:
    with Image.open(image_path) as im:
        return np.array(im.convert("RGB"))


def _torch_cuda_available() -> bool:
    try:
        import torch
        return bool(torch.cuda.is_available())
    except Exception:
        return False


@contextmanager
def _model_cache_lock(cache_root: Path, timeout: float = 180.0, poll: float = 0.2) -> Iterator[bool]:
    """
    Hold `model_init.lock` in the model cache while a Reader is built, so two
    processes never download the same weights at once. Yields False when the
    lock could not be taken before `timeout`.
    """
    cache_root.mkdir(parents=True, exist_ok=True)
    lock_file = cache_root / "model_init.lock"
    deadline = time.monotonic() + timeout
    held = False
    while not held:
        try:
            fd = os.open(lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            if time.monotonic() >= deadline:
                logger.warning("Model cache %s stayed locked, building the reader unlocked", cache_root)
                break
            time.sleep(poll)
            continue
        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        held = True
    try:
        yield held
    finally:
        if held:
            lock_file.unlink(missing_ok=True)


# -----------------------------
# Backend
# -----------------------------

class EasyOCREngine(BaseOCREngine):
    """
    EasyOCR adapter. The torch model behind the Reader is not safe to share
    between threads, the recognizer serializes calls into it.

    Supported kwargs (all optional):
      - languages / lang: list[str] | str (default ["en"])
      - gpu / use_gpu: bool (defaults to True if CUDA is available, else False)
      - model_storage_directory: str
      - user_network_directory: str
      - download_enabled: bool (default True)
      - recog_network, detector, recognizer, verbose, quantize
      - decoder: "greedy" | "beamsearch", beam_width: int
    """

    thread_safe = False

    def __init__(self, **kwargs: Any):
        k = _norm_langs_to_easyocr(kwargs)

        want_gpu = _as_bool(k.pop("gpu", k.pop("use_gpu", True)), True)
        use_gpu = bool(want_gpu and _torch_cuda_available())

        model_dir = k.pop("model_storage_directory", None)
        user_net_dir = k.pop("user_network_directory", None)
        download_enabled = _as_bool(k.pop("download_enabled", True), True)
        recog_network = k.pop("recog_network", "standard")
        detector = _as_bool(k.pop("detector", True), True)
        recognizer = _as_bool(k.pop("recognizer", True), True)
        verbose = _as_bool(k.pop("verbose", False), False)
        quantize = _as_bool(k.pop("quantize", False), False)

        decoder = str(k.pop("decoder", "greedy")).strip().lower()
        self._decoder = decoder if decoder in ("greedy", "beamsearch") else "greedy"
        self._beam_width = max(1, min(_as_int_or(k.pop("beam_width", k.pop("beamWidth", 10)), 10), 20))

        langs = k.pop("languages")
        reader_kwargs = dict(
            model_storage_directory=model_dir,
            user_network_directory=user_net_dir,
            recog_network=recog_network,
            download_enabled=download_enabled,
            detector=detector,
            recognizer=recognizer,
            verbose=verbose,
            quantize=quantize,
        )

        cache_root = Path(model_dir) if model_dir else Path.home() / ".cache" / "easyocr"
        with _model_cache_lock(cache_root):
            try:
                self.reader = easyocr.Reader(langs, gpu=use_gpu, **reader_kwargs)
            except Exception as e:
                if not use_gpu:
                    raise
                logger.warning("EasyOCR GPU init failed, falling back to CPU: %s", e)
                self.reader = easyocr.Reader(langs, gpu=False, **reader_kwargs)

    def read(self, image_path: Path) -> Tuple[str, List[float]]:
        rgb = _load_rgb(image_path)
        with np.errstate(over="ignore", invalid="ignore"):
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", category=RuntimeWarning)
                detections = self.reader.readtext(
                    rgb,
                    detail=1,
                    paragraph=False,
                    decoder=self._decoder,
                    beamWidth=self._beam_width,
                )

        lines: List[str] = []
        confidences: List[float] = []
        for det in detections or []:
            # (bbox, text, confidence in 0..1)
            if len(det) < 3 or not str(det[1]).strip():
                continue
            lines.append(str(det[1]).strip())
            confidences.append(float(det[2]) * 100.0)
        return "\n".join(lines).strip(), confidences

    def close(self) -> None:
        self.reader = None


def _as_int_or(x, default: int) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        return default
