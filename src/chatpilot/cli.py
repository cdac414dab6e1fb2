"""Command-line interface for chatpilot.

Provides the main entry point for running the monitoring loop and for
checking the individual collaborators (OCR, models, health) by hand.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="chatpilot",
        description="OCR-driven chat auto-responder",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/chatpilot.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Monitor the chat window and reply automatically")
    run_parser.add_argument(
        "--app", choices=["whatsapp", "discord"], default=None,
        help="Chat application to reply in (default: from config)",
    )
    run_parser.add_argument(
        "--provider", choices=["ollama", "nebius"], default=None,
        help="Response generator backend (default: from config)",
    )

    subparsers.add_parser("models", help="List models offered by the configured generator")
    subparsers.add_parser("health", help="Probe the local screen-recording service once")
    subparsers.add_parser("capture", help="Fetch the latest OCR text and show the extracted message")

    return parser.parse_args(argv)


def build_generator(settings):
    """Create the response generator selected in the configuration."""
    gen = settings.generator
    if gen.provider == "nebius":
        from chatpilot.generator.nebius import NebiusGenerator
        return NebiusGenerator(
            api_key=settings.nebius_api_key.get_secret_value(),
            model=gen.nebius_model,
            base_url=gen.nebius_base_url,
            system_prompt=gen.system_prompt_override,
            max_tokens=gen.max_tokens,
            timeout=gen.timeout,
        )

    from chatpilot.generator.ollama import OllamaGenerator
    return OllamaGenerator(
        model=gen.ollama_model,
        base_url=gen.ollama_base_url,
        system_prompt=gen.system_prompt_override,
        max_tokens=gen.max_tokens,
        timeout=gen.timeout,
    )


def build_automation(settings):
    """Create the automation backend selected in the configuration."""
    if settings.automation.backend == "local":
        from chatpilot.automation.local_backend import LocalAutomationClient
        return LocalAutomationClient()

    from chatpilot.automation.http_backend import HttpAutomationClient
    return HttpAutomationClient(
        base_url=settings.automation.http_base_url,
        timeout=settings.automation.http_timeout,
    )


async def _run_monitor(settings) -> None:
    """Initialize all components and monitor until interrupted."""
    from chatpilot.health import HealthMonitor
    from chatpilot.monitor.loop import MonitorLoop
    from chatpilot.ocr.http_source import HttpOcrSource
    from chatpilot.utils.logging import ActivityLog

    mon = settings.monitor
    ocr = HttpOcrSource(base_url=settings.ocr.base_url, timeout=settings.ocr.timeout)
    automation = build_automation(settings)
    generator = build_generator(settings)
    health = HealthMonitor(
        url=settings.health.url,
        interval=settings.health.interval,
        timeout=settings.health.timeout,
    )

    print(f"Using {settings.generator.provider} ({generator.model}), replying in {mon.target_app.value}")
    print(f"You have {mon.startup_delay:g} seconds to switch to your chat application.")
    print("Requires fixed window positioning and 100% screen scaling. Press Ctrl+C to stop.\n")

    health_task = asyncio.create_task(health.run(), name="chatpilot-health")
    try:
        async with ocr, automation:
            loop = MonitorLoop(
                ocr=ocr,
                generator=generator,
                automation=automation,
                profiles=settings.apps,
                target_app=mon.target_app,
                startup_delay=mon.startup_delay,
                cycle_interval=mon.cycle_interval,
                ocr_confidence=mon.ocr_confidence,
                dispatch_config=settings.dispatch,
                keepalive=mon.keepalive,
                activity=ActivityLog(capacity=mon.activity_capacity),
            )
            async with loop:
                loop.start()
                await asyncio.Event().wait()
    finally:
        health.stop()
        await health_task
        await generator.close()


async def _list_models(settings) -> None:
    generator = build_generator(settings)
    try:
        models = await generator.list_models()
    finally:
        await generator.close()
    if not models:
        print("No models found.")
        return
    for name in models:
        marker = "*" if name == generator.model else " "
        print(f" {marker} {name}")


async def _health(settings) -> None:
    from chatpilot.health import HealthMonitor

    monitor = HealthMonitor(url=settings.health.url, timeout=settings.health.timeout)
    status = await monitor.check()
    print(f"{settings.health.url}: {status.value}")


async def _capture(settings) -> None:
    from chatpilot.monitor.detector import last_block
    from chatpilot.ocr.http_source import HttpOcrSource

    async with HttpOcrSource(base_url=settings.ocr.base_url, timeout=settings.ocr.timeout) as ocr:
        snapshot = await ocr.latest()

    if snapshot is None:
        print("No OCR data available")
        return

    print("=" * 60)
    print(f"OCR TEXT ({len(snapshot.text)} chars, app={snapshot.app_name or 'unknown'})")
    print("=" * 60)
    print(snapshot.text[-1000:])
    print("-" * 60)
    print(f"Latest message: {last_block(snapshot.text)!r}")


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the chatpilot CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from chatpilot.config.settings import load_settings
    from chatpilot.domain.models import TargetApp
    from chatpilot.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "run":
        if args.app:
            settings.monitor.target_app = TargetApp(args.app)
        if args.provider:
            settings.generator.provider = args.provider
        logger.info("Starting monitoring for %s", settings.monitor.target_app.value)
        try:
            asyncio.run(_run_monitor(settings))
        except KeyboardInterrupt:
            logger.info("Monitoring stopped by user")

    elif args.command == "models":
        asyncio.run(_list_models(settings))

    elif args.command == "health":
        asyncio.run(_health(settings))

    elif args.command == "capture":
        asyncio.run(_capture(settings))


if __name__ == "__main__":
    main()
