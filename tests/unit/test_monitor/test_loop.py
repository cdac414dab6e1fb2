"""Tests for the MonitorLoop orchestrator."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from chatpilot.automation.base import AutomationError
from chatpilot.config.settings import DispatchConfig, KeepAliveConfig
from chatpilot.domain.models import (
    AppCoordinateProfile,
    ChatRole,
    MonitorState,
    OcrContext,
    OcrSnapshot,
    Point,
    SeenMessage,
    TargetApp,
)
from chatpilot.generator.base import GeneratorError, ResponseGenerator
from chatpilot.monitor.loop import MonitorLoop
from chatpilot.ocr.base import OcrSourceError
from chatpilot.utils.logging import ActivityLog


def make_loop(
    ocr: AsyncMock,
    generator: AsyncMock,
    automation: AsyncMock,
    profiles: dict[TargetApp, AppCoordinateProfile],
    dispatch: DispatchConfig,
    **kwargs,
) -> MonitorLoop:
    return MonitorLoop(
        ocr=ocr,
        generator=generator,
        automation=automation,
        profiles=profiles,
        dispatch_config=dispatch,
        **kwargs,
    )


class TestLifecycle:
    def test_initial_state(self, monitor_loop: MonitorLoop) -> None:
        assert monitor_loop.state == MonitorState.IDLE
        assert monitor_loop.is_running is False
        assert monitor_loop.session is None
        assert monitor_loop.history == []

    def test_requires_profile_for_target_app(
        self, mock_ocr_source, mock_generator, mock_automation, profiles
    ) -> None:
        with pytest.raises(ValueError):
            MonitorLoop(
                ocr=mock_ocr_source,
                generator=mock_generator,
                automation=mock_automation,
                profiles={TargetApp.WHATSAPP: profiles[TargetApp.WHATSAPP]},
                target_app=TargetApp.DISCORD,
            )

    def test_uses_given_activity_log(
        self, mock_ocr_source, mock_generator, mock_automation, profiles
    ) -> None:
        log = ActivityLog(capacity=3)
        loop = MonitorLoop(
            ocr=mock_ocr_source,
            generator=mock_generator,
            automation=mock_automation,
            profiles=profiles,
            activity=log,
        )
        assert loop.activity is log
        assert loop.activity.capacity == 3

    async def test_start_opens_app_and_waits(
        self, started_loop: MonitorLoop, mock_automation: AsyncMock
    ) -> None:
        assert started_loop.state == MonitorState.STARTING
        assert started_loop.is_running is True
        assert started_loop.session.is_active is True
        assert started_loop.session.pending_timer is not None
        mock_automation.open_application.assert_awaited_once_with("WhatsApp")

    async def test_start_is_rejected_while_running(
        self, started_loop: MonitorLoop, mock_automation: AsyncMock
    ) -> None:
        session = started_loop.session
        started_loop.start()
        await started_loop.join()
        assert started_loop.session is session
        mock_automation.open_application.assert_awaited_once()
        assert started_loop.activity.entries[-1].message == "Monitoring is already running"

    async def test_open_application_failure_is_not_fatal(
        self, monitor_loop: MonitorLoop, mock_automation: AsyncMock
    ) -> None:
        mock_automation.open_application.side_effect = AutomationError("no such app")
        async with monitor_loop:
            monitor_loop.start()
            await monitor_loop.join()
            assert monitor_loop.session.is_active is True
            assert monitor_loop.session.pending_timer is not None

    async def test_stop_between_ticks_cancels_timer(self, started_loop: MonitorLoop) -> None:
        timer = started_loop.session.pending_timer
        started_loop.stop()
        assert timer.cancelled()
        await started_loop.join()
        assert started_loop.session is None
        assert started_loop.state == MonitorState.STOPPED
        assert started_loop.is_running is False

    async def test_restart_creates_fresh_session(self, started_loop: MonitorLoop) -> None:
        await started_loop.tick()
        first = started_loop.session
        assert first.seen_messages

        started_loop.stop()
        started_loop.start()
        await started_loop.join()

        assert started_loop.session is not first
        assert started_loop.session.seen_messages == []
        assert started_loop.session.history == []

    async def test_close_discards_session(self, monitor_loop: MonitorLoop) -> None:
        async with monitor_loop:
            monitor_loop.start()
            await monitor_loop.join()
            session = monitor_loop.session
        assert monitor_loop.session is None
        assert session.is_active is False
        assert session.pending_timer is None

    async def test_tick_without_session_raises(self, monitor_loop: MonitorLoop) -> None:
        with pytest.raises(RuntimeError):
            await monitor_loop.tick()


class TestTick:
    async def test_new_message_is_answered(
        self,
        started_loop: MonitorLoop,
        mock_generator: AsyncMock,
        mock_automation: AsyncMock,
    ) -> None:
        result = await started_loop.tick()

        assert result.ocr_text == "Hi there"
        assert result.new_message == "Hi there"
        assert result.reply == "Sure, got it"
        assert result.dispatched is True
        assert result.error is None

        message, history, context = mock_generator.generate.await_args.args
        assert message == "Hi there"
        assert [(m.role, m.content) for m in history] == [(ChatRole.USER, "Hi there")]
        assert context == OcrContext(text="Hi there", confidence=0.9)

        session = started_loop.session
        assert [(m.role, m.content) for m in session.history] == [
            (ChatRole.USER, "Hi there"),
            (ChatRole.ASSISTANT, "Sure, got it"),
        ]
        assert session.seen_messages[-1] == SeenMessage(role=ChatRole.ASSISTANT, content="Sure, got it")
        mock_automation.type.assert_awaited_once_with("Sure, got it")

    async def test_unchanged_screen_generates_once(
        self, started_loop: MonitorLoop, mock_generator: AsyncMock
    ) -> None:
        await started_loop.tick()
        result = await started_loop.tick()
        assert result.new_message is None
        mock_generator.generate.assert_awaited_once()

    async def test_history_timestamps_are_ordered(self, started_loop: MonitorLoop) -> None:
        await started_loop.tick()
        stamps = [m.timestamp for m in started_loop.history]
        assert stamps == sorted(stamps)

    async def test_no_ocr_data(
        self,
        started_loop: MonitorLoop,
        mock_ocr_source: AsyncMock,
        mock_generator: AsyncMock,
    ) -> None:
        mock_ocr_source.latest.return_value = None
        result = await started_loop.tick()
        assert result.ocr_text is None
        mock_generator.generate.assert_not_awaited()
        assert started_loop.activity.entries[-1].message == "No OCR data available"

    async def test_blank_ocr_text(
        self,
        started_loop: MonitorLoop,
        mock_ocr_source: AsyncMock,
        mock_generator: AsyncMock,
    ) -> None:
        mock_ocr_source.latest.return_value = OcrSnapshot(text="   ")
        result = await started_loop.tick()
        assert result.ocr_text is None
        mock_generator.generate.assert_not_awaited()

    async def test_ocr_error_is_contained(
        self,
        started_loop: MonitorLoop,
        mock_ocr_source: AsyncMock,
    ) -> None:
        mock_ocr_source.latest.side_effect = OcrSourceError("connection refused")
        result = await started_loop.tick()
        assert result.error == "OCR error: connection refused"
        assert started_loop.session.is_active is True

    async def test_generator_error_sends_nothing(
        self,
        started_loop: MonitorLoop,
        mock_generator: AsyncMock,
        mock_automation: AsyncMock,
    ) -> None:
        mock_generator.generate.side_effect = GeneratorError("model not found")
        result = await started_loop.tick()
        assert result.new_message == "Hi there"
        assert result.reply is None
        assert result.error == "Error: model not found"
        mock_automation.move_mouse.assert_not_awaited()
        assert [m.role for m in started_loop.history] == [ChatRole.USER]

    async def test_busy_generator_gets_stalling_reply(
        self,
        started_loop: MonitorLoop,
        mock_generator: AsyncMock,
        mock_automation: AsyncMock,
    ) -> None:
        mock_generator.should_stall = True
        result = await started_loop.tick()

        assert result.stalled is True
        assert result.reply == mock_generator.stall_reply
        mock_generator.generate.assert_not_awaited()
        typed = "".join(c.args[0] for c in mock_automation.type.await_args_list)
        assert typed == mock_generator.stall_reply
        last = started_loop.history[-1]
        assert last.role == ChatRole.ASSISTANT
        assert last.content == mock_generator.stall_reply

    async def test_own_reply_echo_is_ignored(
        self,
        started_loop: MonitorLoop,
        mock_ocr_source: AsyncMock,
        mock_generator: AsyncMock,
    ) -> None:
        await started_loop.tick()
        mock_ocr_source.latest.return_value = OcrSnapshot(text="Hi there\n\nSure, got it")
        result = await started_loop.tick()
        assert result.new_message is None
        mock_generator.generate.assert_awaited_once()

    async def test_failed_dispatch_is_not_recorded(
        self,
        started_loop: MonitorLoop,
        mock_ocr_source: AsyncMock,
        mock_automation: AsyncMock,
    ) -> None:
        mock_automation.click.side_effect = [None, AutomationError("click failed")]
        result = await started_loop.tick()

        assert result.dispatched is False
        assert result.error == "Dispatch failed"
        seen = started_loop.session.seen_messages
        assert SeenMessage(role=ChatRole.ASSISTANT, content="Sure, got it") not in seen
        assert started_loop.session.is_active is True

        mock_automation.click.side_effect = None
        mock_ocr_source.latest.return_value = OcrSnapshot(text="Hi there\n\nAnyone?")
        result = await started_loop.tick()
        assert result.dispatched is True

    async def test_dispatch_error_reaches_activity_log(
        self, started_loop: MonitorLoop, mock_automation: AsyncMock
    ) -> None:
        mock_automation.type.side_effect = AutomationError("keyboard gone")
        await started_loop.tick()
        messages = [e.message for e in started_loop.activity.entries]
        assert "Sending response to whatsapp" in messages
        assert messages[-1] == "Error sending: keyboard gone"

    async def test_stop_during_generation_prevents_dispatch(
        self,
        started_loop: MonitorLoop,
        mock_generator: AsyncMock,
        mock_automation: AsyncMock,
    ) -> None:
        async def generate_then_stop(*args, **kwargs) -> str:
            started_loop.stop()
            return "too late"

        mock_generator.generate.side_effect = generate_then_stop
        result = await started_loop.tick()

        assert result.reply == "too late"
        assert result.dispatched is False
        mock_automation.move_mouse.assert_not_awaited()
        assert started_loop.history[-1].content == "too late"

        await started_loop.join()
        assert started_loop.session is None

    async def test_activity_log_is_bounded(self, started_loop: MonitorLoop) -> None:
        for _ in range(5):
            await started_loop.tick()
        assert started_loop.activity.count == 10

    async def test_keepalive_runs_after_tick(
        self,
        mock_ocr_source: AsyncMock,
        mock_generator: AsyncMock,
        mock_automation: AsyncMock,
        profiles: dict[TargetApp, AppCoordinateProfile],
        fast_dispatch: DispatchConfig,
    ) -> None:
        mock_ocr_source.latest.return_value = None
        keepalive = KeepAliveConfig(enabled=True, point=Point(x=720, y=800))
        loop = make_loop(
            mock_ocr_source, mock_generator, mock_automation, profiles, fast_dispatch,
            startup_delay=3600, keepalive=keepalive,
        )
        async with loop:
            loop.start()
            await loop.join()
            await loop.tick()

        mock_automation.click_at.assert_awaited_once_with(720, 800)
        mock_automation.type.assert_awaited_once_with("hello world")
        assert [c.args for c in mock_automation.press.await_args_list] == [("enter",), ("enter",)]

    async def test_keepalive_disabled_by_default(
        self, started_loop: MonitorLoop, mock_ocr_source: AsyncMock, mock_automation: AsyncMock
    ) -> None:
        mock_ocr_source.latest.return_value = None
        await started_loop.tick()
        mock_automation.click_at.assert_not_awaited()
        mock_automation.press.assert_not_awaited()


class GatedGenerator(ResponseGenerator):
    """Holds every completion until ``gate`` is set."""

    def __init__(self) -> None:
        super().__init__(model="gated")
        self.gate = asyncio.Event()

    async def _complete(self, messages: list[dict[str, str]]) -> str:
        await self.gate.wait()
        return "Sure, got it"

    async def list_models(self) -> list[str]:
        return ["gated"]

    async def health_check(self) -> bool:
        return True


class TestConcurrency:
    async def test_shared_generator_stalls_second_loop(
        self,
        mock_ocr_source: AsyncMock,
        mock_automation: AsyncMock,
        profiles: dict[TargetApp, AppCoordinateProfile],
        fast_dispatch: DispatchConfig,
    ) -> None:
        generator = GatedGenerator()
        first = make_loop(
            mock_ocr_source, generator, mock_automation, profiles, fast_dispatch,
            startup_delay=3600, cycle_interval=3600,
        )
        second = make_loop(
            mock_ocr_source, generator, AsyncMock(), profiles, fast_dispatch,
            startup_delay=3600, cycle_interval=3600,
        )
        async with first, second:
            first.start()
            second.start()
            await first.join()
            await second.join()

            pending = asyncio.create_task(first.tick())
            while not generator.is_busy:
                await asyncio.sleep(0)

            stalled = await second.tick()
            assert stalled.stalled is True
            assert stalled.reply == GatedGenerator.stall_reply

            generator.gate.set()
            result = await pending
            assert result.stalled is False
            assert result.reply == "Sure, got it"

    async def test_direct_tick_waits_for_cycle_in_progress(
        self,
        started_loop: MonitorLoop,
        mock_ocr_source: AsyncMock,
        mock_generator: AsyncMock,
    ) -> None:
        gate = asyncio.Event()

        async def slow_generate(*args, **kwargs) -> str:
            await gate.wait()
            return "Sure, got it"

        mock_generator.generate.side_effect = slow_generate
        first = asyncio.create_task(started_loop.tick())
        while not mock_generator.generate.await_count:
            await asyncio.sleep(0)

        second = asyncio.create_task(started_loop.tick())
        for _ in range(5):
            await asyncio.sleep(0)
        assert mock_ocr_source.latest.await_count == 1

        gate.set()
        await first
        await second
        assert mock_ocr_source.latest.await_count == 2


class TestManualCapture:
    async def test_processes_given_text(
        self, started_loop: MonitorLoop, mock_generator: AsyncMock, mock_ocr_source: AsyncMock
    ) -> None:
        started_loop.manual_capture("header\n\nManual hello")
        await started_loop.join()
        assert mock_generator.generate.await_args.args[0] == "Manual hello"
        mock_ocr_source.latest.assert_not_awaited()

    async def test_queries_ocr_without_text(
        self, started_loop: MonitorLoop, mock_generator: AsyncMock, mock_ocr_source: AsyncMock
    ) -> None:
        started_loop.manual_capture()
        await started_loop.join()
        mock_ocr_source.latest.assert_awaited_once()
        assert mock_generator.generate.await_args.args[0] == "Hi there"

    async def test_ignored_without_session(
        self, monitor_loop: MonitorLoop, mock_generator: AsyncMock
    ) -> None:
        async with monitor_loop:
            monitor_loop.manual_capture("hello")
            await monitor_loop.join()
        mock_generator.generate.assert_not_awaited()


class TestScheduling:
    @pytest.fixture
    def fast_loop(
        self,
        mock_ocr_source: AsyncMock,
        mock_generator: AsyncMock,
        mock_automation: AsyncMock,
        profiles: dict[TargetApp, AppCoordinateProfile],
        fast_dispatch: DispatchConfig,
    ) -> MonitorLoop:
        return make_loop(
            mock_ocr_source, mock_generator, mock_automation, profiles, fast_dispatch,
            startup_delay=0, cycle_interval=0.01,
        )

    async def test_ticks_repeat_until_stopped(self, fast_loop: MonitorLoop, wait_for_ticks) -> None:
        async with fast_loop:
            fast_loop.start()
            await wait_for_ticks(fast_loop, 3)
            assert fast_loop.state == MonitorState.RUNNING
            fast_loop.stop()
            await fast_loop.join()
        assert fast_loop.state == MonitorState.STOPPED

    async def test_no_tick_after_stop_in_flight(
        self,
        fast_loop: MonitorLoop,
        mock_generator: AsyncMock,
        mock_ocr_source: AsyncMock,
    ) -> None:
        async def generate_then_stop(*args, **kwargs) -> str:
            fast_loop.stop()
            return "bye"

        mock_generator.generate.side_effect = generate_then_stop
        async with fast_loop:
            fast_loop.start()
            await asyncio.sleep(0.2)
            assert fast_loop.session is None
        mock_ocr_source.latest.assert_awaited_once()

    async def test_dispatch_failure_does_not_stop_loop(
        self,
        fast_loop: MonitorLoop,
        mock_ocr_source: AsyncMock,
        mock_automation: AsyncMock,
        wait_for_ticks,
    ) -> None:
        texts = iter(["first", "first\n\nsecond"])

        async def latest() -> OcrSnapshot:
            return OcrSnapshot(text=next(texts, "first\n\nsecond"))

        mock_ocr_source.latest.side_effect = latest
        # Fail the first select click of the first dispatch only
        mock_automation.click.side_effect = [None, AutomationError("stuck")] + [None] * 20

        async with fast_loop:
            fast_loop.start()
            await wait_for_ticks(fast_loop, 3)
            sent = [
                s.content for s in fast_loop.session.seen_messages
                if s.role == ChatRole.ASSISTANT
            ]
            fast_loop.stop()

        assert sent == ["Sure, got it"]
        mock_automation.type.assert_awaited_once_with("Sure, got it")
