"""Abstract base class for response generators.

All language-model backends must conform to this interface, enabling
the monitoring loop to swap between providers without changing the
rest of the pipeline.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Sequence

from chatpilot.domain.models import ChatMessage, ChatRole, OcrContext

logger = logging.getLogger(__name__)


DEFAULT_SYSTEM_PROMPT = """You are chatting with someone through a desktop messaging app, replying on the user's behalf.

Write the next reply to the most recent message in the conversation.

Rules:
- Reply in the language of the incoming message
- Keep it short: one or two sentences, like a real chat message
- Plain text only, no markdown, no line breaks, no emoji codes
- Never mention that you are an AI or that you are reading the screen
- If the message is unclear, ask a brief clarifying question
"""

SCREEN_CONTEXT_TEMPLATE = """
Text currently visible in the chat window (OCR, confidence {confidence:.2f}). Use it only as background, it may contain noise:
---
{text}
---
"""

MAX_CONTEXT_CHARS = 2000


class ResponseGenerator(ABC):
    """Abstract interface for language-model reply backends.

    A generator turns the newest incoming message, the conversation so
    far and the current screen text into a reply. While a request is in
    flight the generator reports itself busy; callers then send
    ``stall_reply`` instead of queueing another request.
    """

    stall_reply = "Let me think about this for a moment."

    def __init__(
        self,
        model: str,
        system_prompt: str | None = None,
        max_history: int = 20,
    ) -> None:
        self._model = model
        self._system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT
        self._max_history = max_history
        self._in_flight = 0

    @property
    def model(self) -> str:
        return self._model

    @property
    def is_busy(self) -> bool:
        """Whether a previous generate() call has not returned yet.

        A single MonitorLoop never overlaps its own calls, so this only turns
        true when the generator is shared with another caller, such as a
        second loop.
        """
        return self._in_flight > 0

    @property
    def is_configured(self) -> bool:
        """Whether the backend has everything it needs to make requests."""
        return True

    @property
    def should_stall(self) -> bool:
        return self.is_busy or not self.is_configured

    async def generate(
        self,
        message: str,
        history: Sequence[ChatMessage],
        context: OcrContext,
    ) -> str:
        """Generate a reply to ``message``.

        Args:
            message: The newly detected incoming message.
            history: Conversation so far, oldest first. May already end
                     with ``message`` as a user turn.
            context: Screen text the message was extracted from.

        Returns:
            The reply text, stripped of surrounding whitespace.

        Raises:
            GeneratorError: If the backend call fails or returns nothing.
        """
        messages = self._build_messages(message, history, context)
        self._in_flight += 1
        try:
            raw = await self._complete(messages)
        finally:
            self._in_flight -= 1

        reply = (raw or "").strip()
        if not reply:
            raise GeneratorError(
                "Model returned an empty reply",
                provider=type(self).__name__,
            )
        logger.debug("Generated reply: %s", reply[:200])
        return reply

    @abstractmethod
    async def _complete(self, messages: list[dict[str, str]]) -> str:
        """Send chat-formatted messages to the backend and return its text."""
        ...

    @abstractmethod
    async def list_models(self) -> list[str]:
        """List the model names the backend can serve."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the backend is reachable and authenticated."""
        ...

    async def close(self) -> None:
        """Release network resources held by the backend."""

    def _build_messages(
        self,
        message: str,
        history: Sequence[ChatMessage],
        context: OcrContext,
    ) -> list[dict[str, str]]:
        """Build an OpenAI-style message list for the backend."""
        system = self._system_prompt
        if context.text.strip():
            system += SCREEN_CONTEXT_TEMPLATE.format(
                confidence=context.confidence,
                text=context.text[-MAX_CONTEXT_CHARS:],
            )

        turns = [m for m in history if m.role != ChatRole.SYSTEM]
        turns = turns[-self._max_history:] if self._max_history else []

        messages = [{"role": "system", "content": system}]
        messages.extend({"role": m.role.value, "content": m.content} for m in turns)

        if not turns or turns[-1].role != ChatRole.USER or turns[-1].content != message:
            messages.append({"role": "user", "content": message})
        return messages


class GeneratorError(Exception):
    """Raised when reply generation fails."""

    def __init__(self, message: str, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider
