"""chatpilot -- OCR-driven chat auto-responder.

Watches a screen region through periodic OCR snapshots, detects new
incoming chat messages, asks a language model for a reply and types
that reply into the chat application by driving the mouse and keyboard
at fixed screen coordinates.
"""

__version__ = "0.1.0"
