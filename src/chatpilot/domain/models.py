"""Core domain models for chatpilot.

These models represent the data flowing through the monitoring loop:
OCR snapshots from the screen recorder, chat turns exchanged with the
language model, per-application screen coordinates, and the outcome
of each monitoring tick.
"""

from __future__ import annotations

import enum
import time
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class TargetApp(str, enum.Enum):
    """Chat application the replies are typed into."""

    WHATSAPP = "whatsapp"
    DISCORD = "discord"


class ChatRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"  # Never produced by the monitoring loop


class MonitorState(str, enum.Enum):
    """Lifecycle state of the monitoring loop."""

    IDLE = "idle"
    STARTING = "starting"  # Waiting for the user to bring the chat app to front
    RUNNING = "running"
    STOPPED = "stopped"


class HealthStatus(str, enum.Enum):
    LOADING = "loading"
    HEALTHY = "healthy"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Screen Coordinates
# ---------------------------------------------------------------------------


class Point(BaseModel):
    """An absolute screen position in pixels, origin at top-left."""

    model_config = ConfigDict(frozen=True)

    x: int = Field(ge=0)
    y: int = Field(ge=0)


class AppCoordinateProfile(BaseModel):
    """Fixed screen positions of a chat application's input widgets.

    Nothing verifies that a click at these points lands on the intended
    control; the chat window has to be placed where the profile expects it.
    """

    model_config = ConfigDict(frozen=True)

    app_name: str = Field(description="Name passed to the open-application primitive")
    input_box: Point = Field(description="Message input field")
    send_button: Point = Field(description="Send button next to the input field")


# ---------------------------------------------------------------------------
# OCR Models
# ---------------------------------------------------------------------------


class OcrSnapshot(BaseModel):
    """The most recent text recognized on screen."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Recognized text payload")
    frame_id: int | None = Field(default=None)
    timestamp: datetime | None = Field(default=None, description="When the frame was captured")
    app_name: str | None = Field(default=None)
    window_name: str | None = Field(default=None)


class OcrContext(BaseModel):
    """Screen context handed to the response generator with every request."""

    model_config = ConfigDict(frozen=True)

    text: str
    confidence: float = Field(default=0.9, ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Conversation Models
# ---------------------------------------------------------------------------


class ChatMessage(BaseModel):
    """One turn of the conversation."""

    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str
    timestamp: float = Field(default_factory=time.monotonic, description="Monotonic creation time")


class SeenMessage(BaseModel):
    """A text block the loop has already handled, tagged with who produced it."""

    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str

    @property
    def tagged(self) -> str:
        if self.role == ChatRole.ASSISTANT:
            return f"AI: {self.content}"
        return self.content


# ---------------------------------------------------------------------------
# Monitoring Models
# ---------------------------------------------------------------------------


class ActivityEntry(BaseModel):
    """A single human-readable line of the activity log."""

    model_config = ConfigDict(frozen=True)

    time: datetime = Field(default_factory=datetime.now)
    message: str

    def __str__(self) -> str:
        return f"[{self.time.strftime('%H:%M:%S')}] {self.message}"


class TickResult(BaseModel):
    """What happened during one detect-generate-dispatch cycle."""

    ocr_text: str | None = Field(default=None, description="OCR text sampled this tick")
    new_message: str | None = Field(default=None, description="Message accepted by the detector")
    reply: str | None = Field(default=None, description="Generated or stalling reply")
    stalled: bool = Field(default=False, description="Whether the stalling reply was used")
    dispatched: bool = Field(default=False, description="Whether the reply was typed and sent")
    error: str | None = Field(default=None, description="Failure that ended the tick early")
