"""Periodic health probe of the local screen-recording service.

Purely observational: the monitoring loop never consults it. It only
tells the user whether OCR and automation are likely to work.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from chatpilot.domain.models import HealthStatus

logger = logging.getLogger(__name__)


class HealthMonitor:
    """Polls a health endpoint and keeps the last observed status."""

    def __init__(
        self,
        url: str = "http://localhost:3030/health",
        interval: float = 30.0,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._interval = interval
        self._timeout = timeout
        self._transport = transport
        self._status = HealthStatus.LOADING
        self._stop_event = asyncio.Event()

    @property
    def status(self) -> HealthStatus:
        return self._status

    async def check(self) -> HealthStatus:
        """Probe the endpoint once. A 2xx answer is healthy, anything else an error."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.get(self._url)
            status = HealthStatus.HEALTHY if resp.is_success else HealthStatus.ERROR
            if status == HealthStatus.ERROR:
                logger.warning("Health check returned HTTP %d", resp.status_code)
        except httpx.HTTPError as e:
            logger.warning("Health check failed: %s", e)
            status = HealthStatus.ERROR

        if status != self._status:
            logger.info("Health status changed: %s -> %s", self._status.value, status.value)
        self._status = status
        return status

    async def run(self) -> None:
        """Probe immediately, then every interval until stop() is called."""
        while not self._stop_event.is_set():
            await self.check()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                continue

    def stop(self) -> None:
        self._stop_event.set()
