"""OCR source module for chatpilot.

Provides the latest recognized screen text through a pluggable source.
The abstract interface hides how the text is produced; the HTTP source
queries a local screen-recording service that runs OCR continuously.

Public API:
    OcrSource -- Abstract base class
    HttpOcrSource -- Client for the screen recorder's search API
"""

from chatpilot.ocr.base import OcrSource, OcrSourceError

__all__ = ["OcrSource", "OcrSourceError", "HttpOcrSource"]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "HttpOcrSource":
        from chatpilot.ocr.http_source import HttpOcrSource
        return HttpOcrSource
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
