"""
OAuth popup window handling.

The popup is opened centered over the host window. Its URL is never
inspected (the provider's pages are cross-origin); the only thing the opener
watches is whether the popup has been closed. The popup page reports its own
closure through the callback server, which flips the handle's flag from the
server thread.
"""

import logging
import threading
import webbrowser
from dataclasses import dataclass
from typing import Dict, Optional

from jobpulse.constants import POPUP_HEIGHT, POPUP_NAME, POPUP_WIDTH

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowGeometry:
    """Position and outer size of the window hosting the connect flow."""

    screen_x: int = 0
    screen_y: int = 0
    outer_width: int = 1280
    outer_height: int = 800


def centered_popup_features(
    parent: WindowGeometry, width: int = POPUP_WIDTH, height: int = POPUP_HEIGHT
) -> Dict[str, int]:
    """Size and position for a popup centered over ``parent``."""
    return {
        "width": width,
        "height": height,
        "left": parent.screen_x + (parent.outer_width - width) // 2,
        "top": parent.screen_y + (parent.outer_height - height) // 2,
    }


def feature_string(features: Dict[str, int]) -> str:
    """window.open-style feature list, e.g. 'width=500,height=600,...'."""
    parts = [f"{key}={value}" for key, value in features.items()]
    return ",".join(parts + ["scrollbars=yes", "resizable=yes"])


class PopupHandle:
    """Handle on an opened popup; ``closed`` may be set from another thread."""

    def __init__(self, url: str, name: str = POPUP_NAME, features: Optional[Dict[str, int]] = None):
        self.url = url
        self.name = name
        self.features = features or {}
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def mark_closed(self):
        self._closed.set()

    def __repr__(self):
        return f"PopupHandle(name={self.name!r}, closed={self.closed})"


class BrowserPopupOpener:
    """
    Opens the authorization URL in a new browser window.

    Returns None when no browser could be launched, which the orchestrator
    treats the same way as a blocked popup.
    """

    def __init__(self, browser: Optional[webbrowser.BaseBrowser] = None):
        self._browser = browser
        self.current: Optional[PopupHandle] = None

    def open(self, url: str, name: str, features: Dict[str, int]) -> Optional[PopupHandle]:
        try:
            browser = self._browser or webbrowser.get()
            opened = browser.open(url, new=1)
        except webbrowser.Error as e:
            logger.warning(f"No browser available for the OAuth popup: {e}")
            opened = False

        if not opened:
            return None

        logger.debug(f"Opened OAuth popup '{name}' ({feature_string(features)})")
        self.current = PopupHandle(url, name, features)
        return self.current

    def mark_closed(self, name: Optional[str] = None) -> bool:
        """Record that the popup window went away (called by the callback server)."""
        handle = self.current
        if handle is None or (name and handle.name != name):
            return False
        handle.mark_closed()
        return True
