"""State owned by one start/stop lifecycle of monitoring."""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from chatpilot.domain.models import ChatMessage, ChatRole, SeenMessage, TargetApp


class MonitorSession(BaseModel):
    """Mutable state of a single monitoring run.

    Created on start and discarded on stop; a restart always begins with
    empty history and an empty set of seen messages. Only the monitoring
    loop's owning task mutates it.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12], frozen=True)
    target_app: TargetApp = Field(frozen=True, description="Selects the coordinate profile")
    started_at: datetime = Field(default_factory=datetime.now)
    is_active: bool = Field(default=True)
    ticks: int = Field(default=0, ge=0, description="Ticks started in this session")
    last_ocr_snapshot: str = Field(default="", description="Last raw OCR text seen")
    last_accepted_message: str = Field(default="")
    seen_messages: list[SeenMessage] = Field(
        default_factory=list, description="Accepted messages and sent replies, oldest first"
    )
    history: list[ChatMessage] = Field(default_factory=list)
    pending_timer: asyncio.TimerHandle | None = Field(default=None, exclude=True)

    def has_seen(self, text: str) -> bool:
        """Whether a block was already accepted or sent, in plain or tagged form."""
        return any(text == seen.content or text == seen.tagged for seen in self.seen_messages)

    def remember(self, text: str, role: ChatRole = ChatRole.USER) -> None:
        self.seen_messages.append(SeenMessage(role=role, content=text))

    def append_history(self, role: ChatRole, content: str) -> ChatMessage:
        message = ChatMessage(role=role, content=content)
        self.history.append(message)
        return message

    def cancel_timer(self) -> None:
        if self.pending_timer is not None:
            self.pending_timer.cancel()
            self.pending_timer = None

    def close(self) -> None:
        """Deactivate, cancel the pending tick and drop the accumulated state."""
        self.is_active = False
        self.cancel_timer()
        self.seen_messages.clear()
        self.history.clear()
