"""The monitoring loop that drives detection, generation and dispatch.

Ties together the OCR source, the message detector, the response
generator and the response dispatcher.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from typing import Any, Mapping

from chatpilot.automation.base import AutomationClient
from chatpilot.config.settings import DispatchConfig, KeepAliveConfig
from chatpilot.domain.models import (
    AppCoordinateProfile,
    ChatMessage,
    ChatRole,
    MonitorState,
    OcrContext,
    TargetApp,
    TickResult,
)
from chatpilot.generator.base import ResponseGenerator
from chatpilot.monitor.detector import MessageDetector
from chatpilot.monitor.dispatcher import ResponseDispatcher
from chatpilot.monitor.session import MonitorSession
from chatpilot.ocr.base import OcrSource
from chatpilot.utils.logging import ActivityLog, preview

logger = logging.getLogger(__name__)


class MonitorCommand(str, enum.Enum):
    """Messages processed, one at a time, by the loop's owning task."""

    START = "start"
    STOP = "stop"
    TICK_ELAPSED = "tick_elapsed"
    MANUAL_CAPTURE = "manual_capture"


class MonitorLoop:
    """Owns the monitoring session and runs one tick at a time.

    Coordinates: OCR sample -> detect -> generate -> dispatch -> reschedule

    All commands go through a queue consumed by a single task, so ticks
    never overlap and the session is only mutated from that task.
    ``stop()`` is the exception: it flips the session inactive right
    away, which an in-flight tick notices before dispatching and before
    rescheduling.

    Example usage::

        async with MonitorLoop(ocr, generator, automation, profiles) as monitor:
            monitor.start()
            ...
            monitor.stop()
            await monitor.join()
    """

    def __init__(
        self,
        ocr: OcrSource,
        generator: ResponseGenerator,
        automation: AutomationClient,
        profiles: Mapping[TargetApp, AppCoordinateProfile],
        target_app: TargetApp = TargetApp.WHATSAPP,
        startup_delay: float = 10.0,
        cycle_interval: float = 5.0,
        ocr_confidence: float = 0.9,
        dispatch_config: DispatchConfig | None = None,
        keepalive: KeepAliveConfig | None = None,
        activity: ActivityLog | None = None,
    ) -> None:
        if target_app not in profiles:
            raise ValueError(f"No coordinate profile for {target_app.value}")
        self._ocr = ocr
        self._generator = generator
        self._automation = automation
        self._profiles = dict(profiles)
        self._target_app = target_app
        self._startup_delay = startup_delay
        self._cycle_interval = cycle_interval
        self._ocr_confidence = ocr_confidence
        self._keepalive = keepalive
        self._activity = activity if activity is not None else ActivityLog()
        self._dispatcher = ResponseDispatcher(
            automation, self._profiles, dispatch_config, activity=self._activity
        )

        self._state = MonitorState.IDLE
        self._session: MonitorSession | None = None
        self._detector: MessageDetector | None = None
        self._queue: asyncio.Queue[tuple[MonitorCommand, Any]] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._cycle_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state in (MonitorState.STARTING, MonitorState.RUNNING)

    @property
    def session(self) -> MonitorSession | None:
        return self._session

    @property
    def activity(self) -> ActivityLog:
        return self._activity

    @property
    def history(self) -> list[ChatMessage]:
        return list(self._session.history) if self._session else []

    def open(self) -> None:
        """Start the owning task. Commands posted before this wait in the queue."""
        if self._worker is not None and not self._worker.done():
            return
        self._worker = asyncio.create_task(self._run(), name="chatpilot-monitor")

    async def close(self) -> None:
        """Tear down: cancel the owning task and discard the session."""
        self._deactivate()
        if self._worker is not None:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None
        self._release_session()
        self._queue = asyncio.Queue()

    async def __aenter__(self) -> MonitorLoop:
        self.open()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.close()

    def start(self) -> None:
        """Request a new monitoring session (ignored if one is running)."""
        self._post(MonitorCommand.START)

    def stop(self) -> None:
        """Stop monitoring.

        Cancels the pending timer immediately. A tick already in flight
        finishes its detection and generation but neither dispatches nor
        reschedules.
        """
        self._deactivate()
        self._post(MonitorCommand.STOP)

    def manual_capture(self, text: str | None = None) -> None:
        """Process OCR text outside the timer, for the active session.

        Args:
            text: OCR text captured by the caller. If None, the OCR
                  source is queried when the command is handled.
        """
        self._post(MonitorCommand.MANUAL_CAPTURE, text)

    async def join(self) -> None:
        """Wait until every command posted so far has been handled."""
        await self._queue.join()

    async def tick(self) -> TickResult:
        """Run one detect-generate-dispatch cycle for the current session.

        The owning task calls this on every timer tick. Direct calls are for
        diagnostics and tests; they wait for any cycle already in progress.
        Never raises for collaborator failures; they are logged to the
        activity log and reported in the result.
        """
        async with self._cycle_lock:
            return await self._tick()

    async def _tick(self) -> TickResult:
        session = self._session
        if session is None:
            raise RuntimeError("Monitoring has not been started")
        session.ticks += 1

        result = TickResult()
        text = await self._sample_ocr(result)
        if text is not None:
            await self._respond(session, text, result)
        await self._send_keepalive(session)
        return result

    # ------------------------------------------------------------------
    # Owning task
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            command, payload = await self._queue.get()
            try:
                await self._handle(command, payload)
            except Exception:
                logger.exception("Failed to handle %s command", command.value)
            finally:
                self._queue.task_done()

    async def _handle(self, command: MonitorCommand, payload: Any) -> None:
        if command == MonitorCommand.START:
            await self._handle_start()
        elif command == MonitorCommand.STOP:
            self._release_session()
        elif command == MonitorCommand.TICK_ELAPSED:
            await self._handle_tick(payload)
        elif command == MonitorCommand.MANUAL_CAPTURE:
            await self._handle_manual_capture(payload)

    async def _handle_start(self) -> None:
        if self._session is not None and self._session.is_active:
            self._activity.add("Monitoring is already running")
            return

        session = MonitorSession(target_app=self._target_app)
        self._session = session
        self._detector = MessageDetector(session)
        self._state = MonitorState.STARTING

        profile = self._profiles[self._target_app]
        self._activity.add(
            f"Starting monitoring for {self._target_app.value} in {self._startup_delay:g} seconds..."
        )
        try:
            await self._automation.open_application(profile.app_name)
        except Exception as e:
            self._activity.add(
                f"Could not open {profile.app_name}: {preview(str(e), 80)}", logging.WARNING
            )

        if session.is_active:
            self._schedule(session, self._startup_delay)

    async def _handle_tick(self, session_id: str) -> None:
        session = self._session
        if session is None or session.session_id != session_id or not session.is_active:
            logger.debug("Ignoring tick for inactive session %s", session_id)
            return

        session.pending_timer = None
        if self._state == MonitorState.STARTING:
            self._state = MonitorState.RUNNING
            self._activity.add("Now beginning chat monitoring")

        await self.tick()

        if session.is_active:
            self._schedule(session, self._cycle_interval)
        else:
            self._activity.add("Monitoring was turned off during the cycle, stopping")

    async def _handle_manual_capture(self, text: str | None) -> None:
        session = self._session
        if session is None or not session.is_active:
            self._activity.add("Manual capture ignored: monitoring is not active")
            return

        result = TickResult()
        if text is None:
            text = await self._sample_ocr(result)
            if text is None:
                return
        elif not text:
            self._activity.add("Manual capture returned no text")
            return
        else:
            result.ocr_text = text
            self._activity.add(f"Manual OCR successful: {len(text)} chars")
        async with self._cycle_lock:
            await self._respond(session, text, result)

    def _schedule(self, session: MonitorSession, delay: float) -> None:
        loop = asyncio.get_running_loop()
        session.pending_timer = loop.call_later(
            delay, self._post, MonitorCommand.TICK_ELAPSED, session.session_id
        )

    def _post(self, command: MonitorCommand, payload: Any = None) -> None:
        self._queue.put_nowait((command, payload))

    def _deactivate(self) -> None:
        if self._session is not None:
            self._session.is_active = False
            self._session.cancel_timer()

    def _release_session(self) -> None:
        session = self._session
        if session is None:
            return
        session.close()
        self._session = None
        self._detector = None
        self._state = MonitorState.STOPPED
        self._activity.add(f"Stopped monitoring {session.target_app.value}")

    # ------------------------------------------------------------------
    # Tick steps
    # ------------------------------------------------------------------

    async def _sample_ocr(self, result: TickResult) -> str | None:
        """Fetch the latest OCR text, or None if there is nothing to process."""
        self._activity.add("Getting OCR data...")
        try:
            snapshot = await self._ocr.latest()
        except Exception as e:
            result.error = f"OCR error: {preview(str(e), 80)}"
            self._activity.add(result.error, logging.WARNING)
            return None

        if snapshot is None:
            self._activity.add("No OCR data available")
            return None
        if not snapshot.text.strip():
            self._activity.add("No text content in OCR data")
            return None

        result.ocr_text = snapshot.text
        self._activity.add(f"OCR text captured ({len(snapshot.text)} chars)")
        return snapshot.text

    async def _respond(self, session: MonitorSession, text: str, result: TickResult) -> None:
        """Detect a new message in ``text`` and answer it."""
        message = self._detector.detect(text)
        if message is None:
            return
        result.new_message = message
        session.append_history(ChatRole.USER, message)
        self._activity.add(f'New message: "{preview(message)}"')

        try:
            reply, stalled = await self._generate_reply(session, message, text)
        except Exception as e:
            result.error = f"Error: {preview(str(e), 80)}"
            self._activity.add(result.error, logging.ERROR)
            return

        result.reply = reply
        result.stalled = stalled
        session.append_history(ChatRole.ASSISTANT, reply)
        self._activity.add(f'Response: "{preview(reply)}"')

        if not session.is_active:
            self._activity.add("Monitoring stopped, not sending response")
            return

        result.dispatched = await self._dispatcher.dispatch(reply, session.target_app)
        if result.dispatched:
            session.remember(reply, ChatRole.ASSISTANT)
        else:
            result.error = "Dispatch failed"

    async def _generate_reply(
        self, session: MonitorSession, message: str, text: str
    ) -> tuple[str, bool]:
        generator = self._generator
        if generator.should_stall:
            logger.info("Generator busy or unconfigured, sending stalling reply")
            return generator.stall_reply, True

        self._activity.add(f"Generating response with {generator.model}")
        context = OcrContext(text=text, confidence=self._ocr_confidence)
        reply = await generator.generate(message, list(session.history), context)
        return reply, False

    async def _send_keepalive(self, session: MonitorSession) -> None:
        keepalive = self._keepalive
        if keepalive is None or not keepalive.enabled or not session.is_active:
            return
        ui = self._automation
        try:
            await ui.click_at(keepalive.point.x, keepalive.point.y)
            if keepalive.text:
                await ui.type(keepalive.text)
            for key in keepalive.keys:
                await ui.press(key)
        except Exception as e:
            self._activity.add(f"Keep-alive failed: {preview(str(e), 80)}", logging.WARNING)
