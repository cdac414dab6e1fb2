"""Local automation backend built on pyautogui.

Drives the pointer and keyboard of the machine chatpilot runs on.
pyautogui calls block, so each one runs in a worker thread to keep the
event loop responsive.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
import sys
from typing import Any, Callable

from chatpilot.automation.base import AutomationClient, AutomationError

logger = logging.getLogger(__name__)


class LocalAutomationClient(AutomationClient):
    """Automation backend that controls the local desktop via pyautogui."""

    def __init__(self, pause: float = 0.1, failsafe: bool = True) -> None:
        self._pause = pause
        self._failsafe = failsafe
        self._gui: Any = None

    async def connect(self) -> None:
        """Import and configure pyautogui.

        Importing needs a display, so it is deferred until here.
        """
        if self._gui is not None:
            return
        try:
            import pyautogui
        except Exception as e:
            raise AutomationError(
                f"pyautogui is not usable: {e}", backend="local"
            ) from e
        pyautogui.PAUSE = self._pause
        pyautogui.FAILSAFE = self._failsafe
        self._gui = pyautogui
        logger.info("Local automation ready (screen %sx%s)", *pyautogui.size())

    async def disconnect(self) -> None:
        self._gui = None

    async def move_mouse(self, x: int, y: int) -> None:
        await self._call(lambda gui: gui.moveTo(x, y))

    async def click(self, button: str = "left") -> None:
        await self._call(lambda gui: gui.click(button=button))

    async def type(self, text: str) -> None:
        await self._call(lambda gui: gui.write(text))

    async def press(self, key: str) -> None:
        await self._call(lambda gui: gui.press(key))

    async def open_application(self, name: str) -> None:
        if sys.platform == "darwin":
            command = ["open", "-a", name]
        elif sys.platform.startswith("win"):
            command = ["cmd", "/c", "start", "", name]
        else:
            command = [name.lower()]
        try:
            await asyncio.to_thread(subprocess.Popen, command)
        except OSError as e:
            raise AutomationError(
                f"Failed to open {name}: {e}", backend="local"
            ) from e
        logger.info("Launched %s", name)

    async def _call(self, action: Callable[[Any], Any]) -> None:
        if self._gui is None:
            raise AutomationError("Local automation not connected", backend="local")
        try:
            await asyncio.to_thread(action, self._gui)
        except Exception as e:
            raise AutomationError(f"pyautogui call failed: {e}", backend="local") from e
