"""New-message detection on raw OCR text.

Chat windows render the newest content at the bottom, so only the last
paragraph of the OCR text is considered. Everything above it is left
alone, which keeps older transcript lines from being re-parsed every
time the screen changes.
"""

from __future__ import annotations

import logging
import re

from chatpilot.monitor.session import MonitorSession

logger = logging.getLogger(__name__)

BLOCK_SEPARATOR = re.compile(r"\n{2,}")


def last_block(text: str) -> str:
    """Return the last blank-line separated block of ``text``, trimmed.

    Text without blank lines is a single block.
    """
    blocks = BLOCK_SEPARATOR.split(text.replace("\r\n", "\n"))
    return blocks[-1].strip()


class MessageDetector:
    """Decides whether an OCR sample contains a message not handled before."""

    def __init__(self, session: MonitorSession) -> None:
        self._session = session

    def detect(self, raw_text: str) -> str | None:
        """Extract a new incoming message from ``raw_text``.

        Returns:
            The accepted message, or None if the text is empty, unchanged
            since the previous sample, or its last block was already seen
            (including replies this session sent itself).
        """
        session = self._session
        if not raw_text or raw_text == session.last_ocr_snapshot:
            logger.debug("Text unchanged or empty, skipping detection")
            return None

        session.last_ocr_snapshot = raw_text
        candidate = last_block(raw_text)

        if not candidate:
            return None
        if candidate == session.last_accepted_message or session.has_seen(candidate):
            logger.debug("Ignoring already handled block: %s", candidate[:50])
            return None

        session.last_accepted_message = candidate
        session.remember(candidate)
        return candidate
