# paraingest/exceptions.py
class ParaIngestError(Exception):
    """Base exception for the paraingest library."""
    pass

class DocumentOpenError(ParaIngestError):
    """Raised when a PDF cannot be read or parsed at all. Fatal for the job."""
    pass

class RasterizationError(ParaIngestError):
    """Raised when a single page fails to render to an image."""
    pass

class RecognitionError(ParaIngestError):
    """Raised by the recognizer when the OCR engine fails to start or run."""
    pass

class JobCancelledError(ParaIngestError):
    """Raised after cleanup when a job was cancelled before all pages ran."""
    pass
