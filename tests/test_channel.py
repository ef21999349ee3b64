"""
Tests for the popup message channel and popup helpers.
"""

import os
import sys
import threading
import webbrowser
from unittest.mock import Mock

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from jobpulse.connection import (
    BrowserPopupOpener,
    MessageChannel,
    WindowGeometry,
    centered_popup_features,
    parse_channel_message,
)
from jobpulse.connection.popup import feature_string


@pytest.mark.parametrize(
    "message_type,kind,provider",
    [
        ("gmail_oauth_success", "success", "gmail"),
        ("outlook_oauth_success", "success", "outlook"),
        ("oauth_success", "success", None),
        ("gmail_oauth_error", "error", "gmail"),
        ("oauth_error", "error", None),
    ],
)
def test_recognized_messages(message_type, kind, provider):
    """Test each recognized tag parses to its kind and provider."""
    message = parse_channel_message({"type": message_type})

    assert message.kind == kind
    assert message.provider == provider


@pytest.mark.parametrize(
    "data",
    [
        None,
        "gmail_oauth_success",
        {"type": "yahoo_oauth_success"},
        {"type": "GMAIL_OAUTH_SUCCESS"},
        {"type": 1},
        {"error": "access_denied"},
    ],
)
def test_unrecognized_messages(data):
    """Test anything outside the recognized set parses to None."""
    assert parse_channel_message(data) is None


def test_error_detail():
    """Test error text is carried and defaults when missing."""
    assert parse_channel_message({"type": "oauth_error", "error": "denied"}).error == "denied"
    assert parse_channel_message({"type": "oauth_error"}).error == "Unknown error"
    assert parse_channel_message({"type": "oauth_success", "error": "x"}).error is None


class TestMessageChannel:
    def test_closed_channel_drops(self):
        """Test nothing is queued before open() or after close()."""
        channel = MessageChannel()
        assert channel.post({"type": "oauth_success"}) is False

        channel.open()
        channel.post({"type": "oauth_success"})
        channel.close()

        assert channel.drain() == []
        assert channel.post({"type": "oauth_success"}) is False

    def test_arrival_order(self):
        """Test messages are drained oldest first."""
        channel = MessageChannel()
        channel.open()
        channel.post({"type": "gmail_oauth_error", "error": "first"})
        channel.post({"type": "gmail_oauth_success"})

        kinds = [m.kind for m in channel.drain()]

        assert kinds == ["error", "success"]
        assert channel.drain() == []

    def test_post_from_another_thread(self):
        """Test a message posted by a server thread reaches the owner."""
        channel = MessageChannel()
        channel.open()

        worker = threading.Thread(target=channel.post, args=({"type": "oauth_success"},))
        worker.start()
        worker.join()

        assert len(channel.drain()) == 1


def test_centered_popup_features():
    """Test the popup is centered over the host window."""
    parent = WindowGeometry(screen_x=0, screen_y=0, outer_width=1280, outer_height=800)

    assert centered_popup_features(parent) == {
        "width": 500,
        "height": 600,
        "left": 390,
        "top": 100,
    }


def test_feature_string():
    """Test the window.open feature list."""
    features = {"width": 500, "height": 600, "left": 10, "top": 20}

    assert feature_string(features) == (
        "width=500,height=600,left=10,top=20,scrollbars=yes,resizable=yes"
    )


class TestBrowserPopupOpener:
    def test_open(self):
        """Test a launched browser yields a handle that can be closed."""
        browser = Mock(spec=webbrowser.BaseBrowser)
        browser.open.return_value = True
        opener = BrowserPopupOpener(browser)

        handle = opener.open("https://auth.example.com", "oauthPopup", {"width": 500})

        browser.open.assert_called_once_with("https://auth.example.com", new=1)
        assert not handle.closed
        assert opener.mark_closed("oauthPopup") is True
        assert handle.closed

    def test_no_browser_is_blocked(self):
        """Test a browser that refuses to open reads as a blocked popup."""
        browser = Mock(spec=webbrowser.BaseBrowser)
        browser.open.return_value = False

        assert BrowserPopupOpener(browser).open("https://x", "oauthPopup", {}) is None

    def test_mark_closed_other_name(self):
        """Test closing a differently named window does nothing."""
        browser = Mock(spec=webbrowser.BaseBrowser)
        browser.open.return_value = True
        opener = BrowserPopupOpener(browser)
        handle = opener.open("https://x", "oauthPopup", {})

        assert opener.mark_closed("other") is False
        assert not handle.closed
