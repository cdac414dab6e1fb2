"""Monitoring module for chatpilot.

Contains the loop that samples OCR text on a timer, detects new chat
messages, asks the response generator for a reply and types it into
the chat application.

Public API:
    MonitorLoop -- Session owner and tick scheduler
    MessageDetector -- New-message extraction from OCR text
    ResponseDispatcher -- Scripted reply delivery
    MonitorSession -- State of one monitoring run
"""

from chatpilot.monitor.detector import MessageDetector
from chatpilot.monitor.dispatcher import ResponseDispatcher
from chatpilot.monitor.loop import MonitorCommand, MonitorLoop
from chatpilot.monitor.session import MonitorSession

__all__ = [
    "MessageDetector",
    "MonitorCommand",
    "MonitorLoop",
    "MonitorSession",
    "ResponseDispatcher",
]
