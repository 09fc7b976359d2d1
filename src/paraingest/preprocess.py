# src/paraingest/preprocess.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from PIL import Image, ImageOps

logger = logging.getLogger("paraingest")


class ImagePreprocessor:
    """
    Normalizes a rendered page before OCR: grayscale, contrast stretch and a
    width cap that never upscales. Any failure returns the original image path,
    a missed enhancement is better than a lost page.
    """

    def __init__(self, max_width: int = 2000, suffix: str = ".pre.png"):
        self.max_width = max(1, int(max_width))
        self.suffix = suffix

    def __call__(self, image_path: Union[str, Path]) -> Path:
        return self.preprocess(image_path)

    def preprocess(self, image_path: Union[str, Path]) -> Path:
        src = Path(image_path)
        out_path = src.with_name(src.name + self.suffix)
        try:
            with Image.open(src) as im:
                gray = ImageOps.grayscale(im)
            # stretch the histogram to the full 0..255 range
            gray = ImageOps.autocontrast(gray)

            if gray.width > self.max_width:
                new_h = max(1, round(gray.height * self.max_width / gray.width))
                gray = gray.resize((self.max_width, new_h), Image.LANCZOS)

            gray.save(out_path, format="PNG")
            return out_path
        except Exception as e:
            logger.warning("Preprocessing failed for %s, using original image, %s", src.name, e)
            try:
                out_path.unlink(missing_ok=True)
            except OSError:
                logger.debug("Could not remove partial output %s", out_path)
            return src
