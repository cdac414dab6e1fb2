"""Abstract base class for OCR text sources."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from chatpilot.domain.models import OcrSnapshot

logger = logging.getLogger(__name__)


class OcrSource(ABC):
    """Abstract interface for fetching the most recent OCR text.

    Example usage::

        async with HttpOcrSource(base_url="http://localhost:3030") as ocr:
            snapshot = await ocr.latest()
            if snapshot is not None:
                print(snapshot.text)
    """

    @abstractmethod
    async def connect(self) -> None:
        """Acquire whatever resources the source needs (clients, handles)."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Release resources. Safe to call more than once."""
        ...

    @abstractmethod
    async def latest(self) -> OcrSnapshot | None:
        """Return the most recent OCR snapshot.

        Returns:
            The newest snapshot, or None when the source has nothing
            (no frames yet, or a frame without text). An empty result
            is not an error.

        Raises:
            OcrSourceError: If the source cannot be queried.
        """
        ...

    async def __aenter__(self) -> OcrSource:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.disconnect()


class OcrSourceError(Exception):
    """Raised when the OCR source cannot be queried."""

    def __init__(self, message: str, source: str = "") -> None:
        super().__init__(message)
        self.source = source
