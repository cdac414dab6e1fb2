"""HTTP OCR source.

Queries the search API of a local screen-recording service for the
most recent OCR frame.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from chatpilot.domain.models import OcrSnapshot
from chatpilot.ocr.base import OcrSource, OcrSourceError

logger = logging.getLogger(__name__)


class HttpOcrSource(OcrSource):
    """Fetches the newest OCR text from ``GET /search?content_type=ocr&limit=1``."""

    def __init__(
        self,
        base_url: str = "http://localhost:3030",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the HTTP client.

        The service is not pinged here; an unreachable recorder shows up
        as a failed query on the first tick instead of a startup error.
        """
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        logger.info("OCR source ready at %s", self._base_url)

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def latest(self) -> OcrSnapshot | None:
        await self.connect()
        try:
            resp = await self._client.get(
                "/search",
                params={"content_type": "ocr", "limit": 1},
            )
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPError as e:
            raise OcrSourceError(f"OCR query failed: {e}", source="http") from e
        except ValueError as e:
            raise OcrSourceError(f"OCR response is not JSON: {e}", source="http") from e

        items = (payload.get("data") or []) if isinstance(payload, dict) else []
        if not items:
            logger.debug("OCR query returned no items")
            return None

        content = items[0].get("content") or {}
        text = content.get("text")
        if not text:
            logger.debug("Latest OCR item has no text payload")
            return None

        try:
            return OcrSnapshot(
                text=text,
                frame_id=content.get("frame_id"),
                timestamp=content.get("timestamp"),
                app_name=content.get("app_name"),
                window_name=content.get("window_name"),
            )
        except ValidationError as e:
            raise OcrSourceError(f"Malformed OCR item: {e}", source="http") from e
