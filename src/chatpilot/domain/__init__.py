"""Domain models for chatpilot.

This package contains all core data structures, enumerations, and value
objects used throughout the system. All models use Pydantic v2 for
validation and serialization.
"""

from chatpilot.domain.models import (
    ActivityEntry,
    AppCoordinateProfile,
    ChatMessage,
    ChatRole,
    HealthStatus,
    MonitorState,
    OcrContext,
    OcrSnapshot,
    Point,
    SeenMessage,
    TargetApp,
    TickResult,
)

__all__ = [
    "ActivityEntry",
    "AppCoordinateProfile",
    "ChatMessage",
    "ChatRole",
    "HealthStatus",
    "MonitorState",
    "OcrContext",
    "OcrSnapshot",
    "Point",
    "SeenMessage",
    "TargetApp",
    "TickResult",
]
