"""
Message channel between the OAuth popup and the opener.

The popup reports completion by posting a small message. Only a bounded set
of tags is recognized; anything else is dropped without raising. Messages may
be posted from the callback server thread and are consumed, in arrival
order, by the thread driving the connection.
"""

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, List, Optional

from jobpulse.constants import PROVIDERS

logger = logging.getLogger(__name__)

SUCCESS = "success"
ERROR = "error"


def _recognized_types():
    types = {"oauth_success": (SUCCESS, None), "oauth_error": (ERROR, None)}
    for provider in PROVIDERS:
        types[f"{provider}_oauth_success"] = (SUCCESS, provider)
        types[f"{provider}_oauth_error"] = (ERROR, provider)
    return types


RECOGNIZED_TYPES = _recognized_types()


@dataclass(frozen=True)
class ChannelMessage:
    kind: str
    provider: Optional[str] = None
    error: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.kind == SUCCESS


def parse_channel_message(data: Any) -> Optional[ChannelMessage]:
    """
    Turn a raw posted payload into a ChannelMessage.

    Returns:
        None for anything that is not a recognized OAuth message
    """
    if not isinstance(data, dict):
        return None
    message_type = data.get("type")
    if not isinstance(message_type, str) or message_type not in RECOGNIZED_TYPES:
        return None

    kind, provider = RECOGNIZED_TYPES[message_type]
    error = data.get("error")
    if kind == ERROR:
        error = str(error) if error else "Unknown error"
    else:
        error = None

    email = data.get("email")
    return ChannelMessage(
        kind=kind,
        provider=provider,
        error=error,
        email=str(email) if email else None,
    )


class MessageChannel:
    """
    Thread-safe inbox for popup messages.

    The listener is installed with ``open()`` for the lifetime of the hosting
    view and removed with ``close()``; messages posted while closed are
    dropped so a stale popup cannot affect a later attempt.
    """

    def __init__(self):
        self._queue: "queue.Queue[ChannelMessage]" = queue.Queue()
        self._listening = threading.Event()

    @property
    def listening(self) -> bool:
        return self._listening.is_set()

    def open(self):
        self._listening.set()

    def close(self):
        self._listening.clear()
        self.drain()

    def post(self, data: Any) -> bool:
        """
        Deliver a raw message.

        Returns:
            True if the message was recognized and queued
        """
        if not self.listening:
            logger.debug("Dropping popup message: no listener installed")
            return False

        message = parse_channel_message(data)
        if message is None:
            logger.debug(f"Ignoring unrecognized popup message: {data!r}")
            return False

        self._queue.put(message)
        return True

    def drain(self) -> List[ChannelMessage]:
        """Take every queued message, oldest first."""
        messages = []
        while True:
            try:
                messages.append(self._queue.get_nowait())
            except queue.Empty:
                return messages
