# paraingest/config.py
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import List, Dict, Any, Optional
import tempfile
from multiprocessing import cpu_count


DEFAULT_OCR_BACKEND = "paraingest.ocr_backends.tesseract_backend.TesseractOCREngine"


def default_concurrency() -> int:
    """Half the host's cores, never less than one."""
    return max(1, cpu_count() // 2)


@dataclass
class IngestConfig:
    """Configuration for one paraingest job (or a series of jobs sharing a recognizer)."""
    augment_if_has_layer: bool = False
    skip_image_only_pages: bool = True
    concurrency: int = field(default_factory=default_concurrency)
    raster_density: int = 200

    temp_root: Path = Path(tempfile.gettempdir())
    workspace_prefix: str = "pdfproc-"
    preprocess_max_width: int = 2000

    pdf_engine: str = "pymupdf"

    ocr_backend: str = DEFAULT_OCR_BACKEND
    ocr_backend_kwargs: Dict[str, Any] = field(default_factory=dict)
    languages: List[str] = field(default_factory=lambda: ["en"])

    error_log_path: Optional[Path] = None
    show_progress: bool = False

    def __post_init__(self):
        self.concurrency = max(1, int(self.concurrency))
        self.raster_density = int(self.raster_density)
        if isinstance(self.temp_root, str):
            self.temp_root = Path(self.temp_root)
        if isinstance(self.error_log_path, str):
            self.error_log_path = Path(self.error_log_path)

    def options(self) -> Dict[str, Any]:
        """The job options echoed back in a DocumentResult's metadata."""
        return {
            "augment_if_has_layer": self.augment_if_has_layer,
            "skip_image_only_pages": self.skip_image_only_pages,
            "concurrency": self.concurrency,
            "raster_density": self.raster_density,
        }

    def to_dict(self):
        """Converts config to a plain dictionary (paths become strings)."""
        d = asdict(self)
        for key, value in d.items():
            if isinstance(value, Path):
                d[key] = str(value)
        return d

    @classmethod
    def from_dict(cls, config_dict: dict):
        d = dict(config_dict)

        for key in ["temp_root", "error_log_path"]:
            if key in d and isinstance(d[key], str):
                d[key] = Path(d[key])

        # allow explicit None to mean use default
        for key in ["concurrency", "raster_density", "temp_root", "ocr_backend", "languages"]:
            if d.get(key) is None:
                d.pop(key, None)

        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in d.items() if k in known})
