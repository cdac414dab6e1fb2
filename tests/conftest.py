"""Shared test fixtures for the chatpilot test suite.

Provides common fixtures used across the unit tests: coordinate
profiles, zero-delay dispatch timing, and mock collaborators for the
monitoring loop.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from chatpilot.config.settings import DispatchConfig, default_app_profiles
from chatpilot.domain.models import AppCoordinateProfile, OcrSnapshot, TargetApp
from chatpilot.monitor.loop import MonitorLoop
from chatpilot.monitor.session import MonitorSession


# ---------------------------------------------------------------------------
# Configuration Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def profiles() -> dict[TargetApp, AppCoordinateProfile]:
    """The built-in WhatsApp/Discord coordinate table."""
    return default_app_profiles()


@pytest.fixture
def fast_dispatch() -> DispatchConfig:
    """Dispatch timing with every settle delay disabled."""
    return DispatchConfig(
        move_settle=0,
        focus_settle=0,
        click_interval=0,
        select_settle=0,
        chunk_interval=0,
        send_settle=0,
    )


@pytest.fixture
def session() -> MonitorSession:
    return MonitorSession(target_app=TargetApp.WHATSAPP)


# ---------------------------------------------------------------------------
# Mock Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_ocr_source() -> AsyncMock:
    """A mock OcrSource whose latest() returns a one-line chat message."""
    mock = AsyncMock()
    mock.latest.return_value = OcrSnapshot(text="Hi there")
    return mock


@pytest.fixture
def mock_generator() -> AsyncMock:
    """A mock ResponseGenerator that is idle and always answers 'Sure, got it'."""
    mock = AsyncMock()
    mock.model = "mock-model"
    mock.should_stall = False
    mock.stall_reply = "Let me think about this for a moment."
    mock.generate.return_value = "Sure, got it"
    return mock


@pytest.fixture
def mock_automation() -> AsyncMock:
    """A mock AutomationClient where every primitive succeeds."""
    return AsyncMock()


@pytest.fixture
def monitor_loop(
    mock_ocr_source: AsyncMock,
    mock_generator: AsyncMock,
    mock_automation: AsyncMock,
    profiles: dict[TargetApp, AppCoordinateProfile],
    fast_dispatch: DispatchConfig,
) -> MonitorLoop:
    """A MonitorLoop whose timers are far enough out to never fire in a test."""
    return MonitorLoop(
        ocr=mock_ocr_source,
        generator=mock_generator,
        automation=mock_automation,
        profiles=profiles,
        startup_delay=3600,
        cycle_interval=3600,
        dispatch_config=fast_dispatch,
    )


@pytest.fixture
async def started_loop(monitor_loop: MonitorLoop):
    """A MonitorLoop with an active session, waiting for its first tick."""
    async with monitor_loop:
        monitor_loop.start()
        await monitor_loop.join()
        yield monitor_loop


@pytest.fixture
def wait_for_ticks():
    """Returns a coroutine function that waits until a loop has run ``count`` ticks."""

    async def _wait_for_ticks(loop: MonitorLoop, count: int, timeout: float = 2.0) -> None:
        async def _poll() -> None:
            while loop.session is None or loop.session.ticks < count:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(_poll(), timeout)

    return _wait_for_ticks
