# paraingest/ocr_backends/tesseract_backend.py
from __future__ import annotations

from typing import List, Tuple, Dict, Any, Optional
import os
import platform
import re
import shutil
from pathlib import Path

from PIL import Image
import pytesseract as pt

from .base import BaseOCREngine


def _as_int(x, default: int) -> int:
    try:
        if isinstance(x, str):
            x = x.strip().rstrip(",}] ")
        return int(x)
    except Exception:
        m = re.search(r"-?\d+", str(x))
        return int(m.group()) if m else default


def resolve_tesseract_cmd() -> Optional[str]:
    # 1) explicit env override
    cmd = os.getenv("TESSERACT_CMD")
    if cmd and Path(cmd).exists():
        return cmd

    # 2) look on PATH
    cmd = shutil.which("tesseract")
    if cmd:
        return cmd

    # 3) common fallbacks by OS
    system = platform.system()
    if system == "Windows":
        candidates = [
            r"C:\Program Files\Tesseract-OCR\tesseract.exe",
            r"C:\Program Files (x86)\Tesseract-OCR\tesseract.exe",
        ]
    elif system == "Darwin":  # macOS
        candidates = [
            "/opt/homebrew/bin/tesseract",   # Apple Silicon Homebrew
            "/usr/local/bin/tesseract",      # Intel Homebrew/MacPorts
        ]
    else:  # Linux and others
        candidates = [
            "/usr/bin/tesseract",
            "/usr/local/bin/tesseract",
            "/snap/bin/tesseract",
        ]

    for p in candidates:
        if Path(p).exists():
            return p
    return None


# Map common ISO codes to Tesseract's traineddata names
_TESS_LANG_MAP = {
    "en": "eng",
    "vi": "vie",
    "fr": "fra",
    "de": "deu",
    "es": "spa",
    "it": "ita",
    "pt": "por",
    "nl": "nld",
}


def _norm_langs_to_tesseract(kwargs: Dict[str, Any]) -> str:
    # Accept languages or lang; allow str or list
    langs = kwargs.pop("languages", None) or kwargs.pop("lang", None)
    if isinstance(langs, str):
        langs = [langs]
    if not langs:
        langs = ["en"]
    codes = [_TESS_LANG_MAP.get(str(l).lower(), str(l).lower()) for l in langs]
    return "+".join(sorted(set(codes)))


def words_from_data(data: Dict[str, List[Any]]) -> Tuple[str, List[float]]:
    """
    Rebuild text and word confidences from pytesseract's image_to_data dict.
    Words keep their line grouping, lines are joined by newlines.
    Rows with conf < 0 are layout rows (blocks, lines), not words.
    """
    lines: Dict[Tuple[int, int, int], List[str]] = {}
    confidences: List[float] = []
    texts = data.get("text", [])
    for i, raw in enumerate(texts):
        word = str(raw or "").strip()
        conf = float(data["conf"][i]) if data.get("conf") else -1.0
        if not word or conf < 0:
            continue
        key = (
            _as_int(data["block_num"][i], 0),
            _as_int(data["par_num"][i], 0),
            _as_int(data["line_num"][i], 0),
        )
        lines.setdefault(key, []).append(word)
        confidences.append(conf)

    text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
    return text.strip(), confidences


class TesseractOCREngine(BaseOCREngine):
    """
    Pytesseract-based backend. Each read() spawns its own tesseract process,
    so concurrent calls are safe.

    Kwargs supported (all optional):
      - languages / lang: list[str] or str, mapped to "eng", "vie", ...
      - tesseract_cmd: full path to tesseract binary
      - tessdata_prefix: path to tessdata directory
      - oem: 0..3 (default 3 = LSTM)
      - psm: page segmentation mode (default 3 = fully automatic)
      - preserve_interword_spaces: bool (default True)
      - extra_config: str of extra flags (appended to config string)
      - (ignored safely if present): gpu, use_gpu, beamsearch
    """

    thread_safe = True

    def __init__(self, **kwargs: Any):
        k = dict(kwargs)  # don't mutate caller's dict

        for junk in ("gpu", "use_gpu", "beamsearch", "model_storage_directory", "download_enabled"):
            k.pop(junk, None)

        tesseract_cmd = k.pop("tesseract_cmd", None) or k.pop("tesseract_path", None) or resolve_tesseract_cmd()
        if tesseract_cmd:
            pt.pytesseract.tesseract_cmd = str(tesseract_cmd)

        tessdata_prefix = k.pop("tessdata_prefix", None)
        if tessdata_prefix:
            os.environ["TESSDATA_PREFIX"] = str(tessdata_prefix)

        self.lang = _norm_langs_to_tesseract(k)

        oem = _as_int(k.pop("oem", 3), 3)
        psm = _as_int(k.pop("psm", 3), 3)
        preserve_spaces = bool(k.pop("preserve_interword_spaces", True))
        extra_cfg = str(k.pop("extra_config", "")).strip()

        cfg_parts = [f"--oem {oem}", f"--psm {psm}"]
        if preserve_spaces:
            cfg_parts.append("-c preserve_interword_spaces=1")
        if extra_cfg:
            cfg_parts.append(extra_cfg)
        self._config = " ".join(cfg_parts)

        # a missing binary must fail here, not on the first page
        self.version = pt.get_tesseract_version()

    def read(self, image_path: Path) -> Tuple[str, List[float]]:
        with Image.open(image_path) as im:
            data = pt.image_to_data(im, lang=self.lang, config=self._config, output_type=pt.Output.DICT)
        return words_from_data(data)
