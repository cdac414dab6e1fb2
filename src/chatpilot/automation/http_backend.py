"""HTTP automation backend.

Sends pointer and keyboard actions to the operator API of a local
screen-recording service, which performs them on the real desktop.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from chatpilot.automation.base import AutomationClient, AutomationError

logger = logging.getLogger(__name__)

PIXEL_PATH = "/experimental/operator/pixel"
OPEN_APPLICATION_PATH = "/experimental/operator/open-application"


class HttpAutomationClient(AutomationClient):
    """Sends automation actions to the local operator endpoint."""

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
        """Create the HTTP client and verify endpoint connectivity."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        try:
            resp = await self._client.get("/health")
            resp.raise_for_status()
            logger.info("Connected to operator at %s", self._base_url)
        except Exception as e:
            await self._client.aclose()
            self._client = None
            raise AutomationError(
                f"Failed to connect to operator: {e}", backend="http"
            ) from e

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Disconnected from operator")

    async def move_mouse(self, x: int, y: int) -> None:
        await self._pixel("MouseMove", {"x": x, "y": y})
        logger.debug("Moved mouse to (%d, %d)", x, y)

    async def click(self, button: str = "left") -> None:
        await self._pixel("MouseClick", button)
        logger.debug("Clicked %s", button)

    async def type(self, text: str) -> None:
        await self._pixel("WriteText", text)
        logger.debug("Typed: %s", text[:50])

    async def press(self, key: str) -> None:
        await self._pixel("KeyPress", key)
        logger.debug("Pressed key: %s", key)

    async def open_application(self, name: str) -> None:
        await self._post(OPEN_APPLICATION_PATH, {"app_name": name})
        logger.info("Opened application: %s", name)

    async def _pixel(self, action_type: str, data: Any) -> None:
        await self._post(PIXEL_PATH, {"action": {"type": action_type, "data": data}})

    async def _post(self, path: str, payload: dict) -> dict:
        """Send a POST request and fail on an unsuccessful operator reply."""
        if self._client is None:
            raise AutomationError("Not connected to operator", backend="http")
        try:
            resp = await self._client.post(path, json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise AutomationError(
                f"HTTP request to {path} failed: {e}", backend="http"
            ) from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if isinstance(body, dict) and body.get("success") is False:
            raise AutomationError(
                f"Operator rejected {path}: {body.get('error') or 'unknown error'}",
                backend="http",
            )
        return body if isinstance(body, dict) else {}
