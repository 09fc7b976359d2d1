# src/paraingest/workspace.py
from __future__ import annotations

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

logger = logging.getLogger("paraingest")


def safe_rmtree(path: Union[str, Path]) -> bool:
    """
    Recursively delete a directory. Missing or half-deleted trees are fine.
    Never raises, returns True when the directory is gone afterwards.
    """
    p = Path(path)
    for attempt in (1, 2):
        try:
            shutil.rmtree(p)
            break
        except FileNotFoundError:
            # already gone, or entries removed underneath us while walking
            if not p.exists():
                break
        except OSError as e:
            logger.warning("Cleanup of %s failed (attempt %d), %s", p, attempt, e)
    gone = not p.exists()
    if not gone:
        logger.warning("Temp directory still present after cleanup, %s", p)
    return gone


class TempWorkspace:
    """
    A per-job temporary directory that is always removed on exit.

    Use as a context manager; the directory exists only inside the block.
    """

    def __init__(self, prefix: str = "pdfproc-", root: Optional[Union[str, Path]] = None):
        self.prefix = prefix
        self.root = Path(root) if root else Path(tempfile.gettempdir())
        self.path: Optional[Path] = None

    @classmethod
    def acquire(cls, prefix: str = "pdfproc-", root: Optional[Union[str, Path]] = None) -> "TempWorkspace":
        return cls(prefix, root)

    def __enter__(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        self.path = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.root))
        logger.debug("Created workspace %s", self.path)
        return self.path

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self.path is not None:
            if safe_rmtree(self.path):
                logger.debug("Removed workspace %s", self.path)
        # never swallow the job's own exception
        return False


@contextmanager
def temp_workspace(prefix: str = "pdfproc-", root: Optional[Union[str, Path]] = None) -> Iterator[Path]:
    with TempWorkspace(prefix, root) as path:
        yield path
