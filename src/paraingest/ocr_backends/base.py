# paraingest/ocr_backends/base.py
from typing import List, Tuple
from abc import ABC, abstractmethod
from pathlib import Path

class BaseOCREngine(ABC):
    # set True only when read() may be called from several threads at once
    thread_safe: bool = False

    @abstractmethod
    def read(self, image_path: Path) -> Tuple[str, List[float]]:
        """Return the recognized text and one confidence (0-100) per token."""
        pass

    def close(self) -> None:
        """Release engine resources. Optional."""
        pass
