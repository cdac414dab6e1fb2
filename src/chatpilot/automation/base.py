"""Abstract base class for UI automation primitives.

All automation backends must conform to this interface, enabling the
system to swap between the HTTP operator backend and the local
pyautogui backend without changing any other code.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class AutomationClient(ABC):
    """Abstract interface for pointer and keyboard actions.

    Every primitive is a separate, fallible call with its own latency;
    there is no batching. Callers insert their own settle delays between
    calls to give the target application time to react.

    Example usage::

        async with HttpAutomationClient(base_url="http://localhost:3030") as ui:
            await ui.move_mouse(650, 680)
            await ui.click("left")
            await ui.type("hello")
            await ui.press("enter")
    """

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to the automation target.

        Raises:
            AutomationError: If the backend cannot be reached.
        """
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection. Safe to call multiple times."""
        ...

    @abstractmethod
    async def move_mouse(self, x: int, y: int) -> None:
        """Move the pointer to absolute screen coordinates.

        Raises:
            AutomationError: If the pointer cannot be moved.
        """
        ...

    @abstractmethod
    async def click(self, button: str = "left") -> None:
        """Click at the current pointer position.

        Args:
            button: 'left', 'right' or 'middle'.

        Raises:
            AutomationError: If the click fails.
        """
        ...

    @abstractmethod
    async def type(self, text: str) -> None:
        """Type text into whatever has keyboard focus.

        Does NOT press Enter at the end.

        Raises:
            AutomationError: If text input fails.
        """
        ...

    @abstractmethod
    async def press(self, key: str) -> None:
        """Press and release a single named key (e.g. 'enter', 'tab').

        Raises:
            AutomationError: If the key press fails.
        """
        ...

    @abstractmethod
    async def open_application(self, name: str) -> None:
        """Launch or bring to front the named application.

        Raises:
            AutomationError: If the application cannot be opened.
        """
        ...

    async def click_at(self, x: int, y: int, button: str = "left") -> None:
        """Move the pointer and click.

        Convenience method that combines move_mouse() and click().
        """
        await self.move_mouse(x, y)
        await self.click(button)

    async def __aenter__(self) -> AutomationClient:
        """Async context manager entry -- connects to the automation target."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Async context manager exit -- disconnects from the automation target."""
        await self.disconnect()


class AutomationError(Exception):
    """Raised when an automation primitive fails."""

    def __init__(self, message: str, backend: str = "") -> None:
        super().__init__(message)
        self.backend = backend
