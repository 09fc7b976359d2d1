# src/paraingest/logger.py

import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Union, Optional

from tqdm import tqdm

# --- Custom Log Level for Progress ---
PROGRESS = 25
logging.addLevelName(PROGRESS, "PROGRESS")

def progress(self, msg, *args, **kwargs):
    if self.isEnabledFor(PROGRESS):
        self._log(PROGRESS, msg, args, **kwargs)

logging.Logger.progress = progress

# --- Custom Handlers ---
class TqdmConsoleHandler(logging.StreamHandler):
    """Writes through tqdm so log lines do not break active progress bars."""
    def emit(self, record: logging.LogRecord):
        try:
            tqdm.write(self.format(record))
        except Exception:
            self.handleError(record)

# --- Custom Filters ---
class OnlyLevelFilter(logging.Filter):
    def __init__(self, levelno: int):
        super().__init__()
        self.levelno = levelno
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno == self.levelno

class ExcludeLevelFilter(logging.Filter):
    def __init__(self, levelno: int):
        super().__init__()
        self.levelno = levelno
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno != self.levelno

# --- Main Configuration Function ---
def setup_logging(
    *,
    level: int = logging.INFO,
    file_path: Optional[Union[str, Path]] = None,
    file_level: Optional[int] = None,
    progress_handler: Optional[logging.Handler] = None,
) -> logging.Logger:
    """
    Configures the "paraingest" logger for an application or the CLI.

    Args:
        level: Level for console output.
        file_path: Optional path of a persistent, rotating log file.
        file_level: Level for the file, defaults to `level`.
        progress_handler: Optional handler that receives only PROGRESS records
            (page counters with phase/current/total extras).

    Returns:
        The configured logger. Calling this again replaces its handlers.
    """
    logger = logging.getLogger("paraingest")
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.propagate = False

    console = TqdmConsoleHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter("%(levelname)-8s | %(message)s"))
    console.addFilter(ExcludeLevelFilter(PROGRESS))
    logger.addHandler(console)

    if file_path:
        fp = Path(file_path)
        fp.parent.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(fp, maxBytes=5*1024*1024, backupCount=2, encoding="utf-8")
        fh.setLevel(file_level if file_level is not None else level)
        fh.setFormatter(logging.Formatter("%(asctime)s | %(threadName)-20s | %(levelname)-8s | %(message)s"))
        fh.addFilter(ExcludeLevelFilter(PROGRESS))
        logger.addHandler(fh)

    if progress_handler is not None:
        progress_handler.setLevel(PROGRESS)
        progress_handler.addFilter(OnlyLevelFilter(PROGRESS))
        logger.addHandler(progress_handler)

    return logger
