"""UI automation module for chatpilot.

Drives the pointer and keyboard through pluggable backends. The abstract
interface supports both the HTTP operator backend (a local service that
owns the input devices) and a local backend built on pyautogui.

Public API:
    AutomationClient -- Abstract base class
    HttpAutomationClient -- HTTP operator backend
    LocalAutomationClient -- pyautogui backend
"""

from chatpilot.automation.base import AutomationClient, AutomationError

__all__ = [
    "AutomationClient",
    "AutomationError",
    "HttpAutomationClient",
    "LocalAutomationClient",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "HttpAutomationClient":
        from chatpilot.automation.http_backend import HttpAutomationClient
        return HttpAutomationClient
    if name == "LocalAutomationClient":
        from chatpilot.automation.local_backend import LocalAutomationClient
        return LocalAutomationClient
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
