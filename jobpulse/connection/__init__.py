"""
Connection package - OAuth connection of email accounts

- state: ConnectionState, ConnectionSession, events and transition()
- popup: popup geometry and the browser-backed opener
- channel: the popup -> opener message inbox
- orchestrator: ConnectionOrchestrator, the driver
"""

from jobpulse.connection.channel import ChannelMessage, MessageChannel, parse_channel_message
from jobpulse.connection.orchestrator import ConnectionOrchestrator
from jobpulse.connection.popup import (
    BrowserPopupOpener,
    PopupHandle,
    WindowGeometry,
    centered_popup_features,
)
from jobpulse.connection.state import ConnectionSession, ConnectionState, transition

__all__ = [
    "BrowserPopupOpener",
    "ChannelMessage",
    "ConnectionOrchestrator",
    "ConnectionSession",
    "ConnectionState",
    "MessageChannel",
    "PopupHandle",
    "WindowGeometry",
    "centered_popup_features",
    "parse_channel_message",
    "transition",
]
