"""Types a reply into the chat application and presses send.

The choreography only knows fixed screen coordinates. Short settle
delays between the steps give the chat application time to react.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Mapping

from chatpilot.automation.base import AutomationClient
from chatpilot.config.settings import DispatchConfig
from chatpilot.domain.models import AppCoordinateProfile, TargetApp
from chatpilot.utils.logging import ActivityLog, preview

logger = logging.getLogger(__name__)


def chunk_text(text: str, size: int = 15) -> list[str]:
    """Split text into pieces of at most ``size`` characters.

    Line breaks are dropped rather than typed, since Enter would submit
    the message before it is complete.
    """
    return re.findall(rf".{{1,{size}}}", text)


class ResponseDispatcher:
    """Delivers reply text through the automation primitives."""

    def __init__(
        self,
        automation: AutomationClient,
        profiles: Mapping[TargetApp, AppCoordinateProfile],
        config: DispatchConfig | None = None,
        activity: ActivityLog | None = None,
    ) -> None:
        self._automation = automation
        self._profiles = dict(profiles)
        self._config = config or DispatchConfig()
        self._activity = activity if activity is not None else ActivityLog()

    async def dispatch(self, text: str, target_app: TargetApp) -> bool:
        """Type ``text`` into ``target_app`` and click send.

        Returns:
            True once the send button was clicked. False if any step
            failed; the remaining steps are skipped.
        """
        profile = self._profiles.get(target_app)
        if profile is None:
            self._activity.add(f"No coordinates configured for {target_app.value}", logging.ERROR)
            return False

        cfg = self._config
        ui = self._automation
        self._activity.add(f"Sending response to {target_app.value}")

        try:
            # Focus the input box
            await ui.move_mouse(profile.input_box.x, profile.input_box.y)
            await asyncio.sleep(cfg.move_settle)
            await ui.click("left")
            await asyncio.sleep(cfg.focus_settle)

            # Select any draft so the reply replaces it
            for _ in range(3):
                await ui.click("left")
                await asyncio.sleep(cfg.click_interval)
            await asyncio.sleep(cfg.select_settle)

            self._activity.add("Typing response")
            for chunk in chunk_text(text, cfg.chunk_size):
                await ui.type(chunk)
                await asyncio.sleep(cfg.chunk_interval)

            await asyncio.sleep(cfg.send_settle)
            await ui.move_mouse(profile.send_button.x, profile.send_button.y)
            await asyncio.sleep(cfg.move_settle)
            await ui.click("left")
        except Exception as e:
            self._activity.add(f"Error sending: {preview(str(e), 80)}", logging.ERROR)
            return False

        self._activity.add("Response sent successfully")
        return True
