"""
Pytest configuration and shared fixtures for JobPulse tests.
"""

import json
import os
import re
import sys
from unittest.mock import Mock
from urllib.parse import urlsplit

import pytest
import requests

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from jobpulse.auth import CredentialGate
from jobpulse.config import Config
from jobpulse.connection.popup import PopupHandle
from jobpulse.constants import AUTH_TOKEN_KEY
from jobpulse.email.client import ProviderClient
from jobpulse.models import ApplicationRecord, EmailAccount, Message
from jobpulse.storage import IN_MEMORY, KeyValueStore


class FakeClock:
    """Manually advanced time source (seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds

    def sleep(self, seconds: float):
        self.now += seconds


class FakePopupOpener:
    """Popup opener that never launches a browser."""

    def __init__(self, blocked: bool = False):
        self.blocked = blocked
        self.opened = []

    def open(self, url, name, features):
        self.opened.append((url, name, features))
        if self.blocked:
            return None
        self.current = PopupHandle(url, name, features)
        return self.current


class FakeProviderSession:
    """
    Stands in for requests.Session, answering the provider endpoints from
    in-memory lists.
    """

    OAUTH_URL = "https://accounts.example.com/o/oauth2/auth?state=abc"

    def __init__(self):
        self.accounts = []
        self.emails = []
        self.applications = []
        self.calls = []

    def request(self, method, url, headers=None, timeout=None, params=None, json=None):
        path = urlsplit(url).path
        self.calls.append((method, path, params, json))

        if path == "/api/email-accounts/" and method == "GET":
            return _json_response(200, self.accounts)
        if path == "/api/email-accounts/oauth-init/":
            return _json_response(200, {"oauth_url": self.OAUTH_URL})

        match = re.fullmatch(r"/api/email-accounts/([^/]+)/gmail-emails/", path)
        if match and method == "GET":
            return _json_response(200, {"emails": self.emails})

        match = re.fullmatch(r"/api/email-accounts/([^/]+)/", path)
        if match and method == "DELETE":
            self.accounts = [a for a in self.accounts if str(a["id"]) != match.group(1)]
            return _json_response(204)

        if path == "/api/job-applications/" and method == "GET":
            return _json_response(200, self.applications)

        match = re.fullmatch(r"/api/job-applications/([^/]+)/", path)
        if match and method == "PATCH":
            for app in self.applications:
                if str(app["id"]) == match.group(1):
                    app.update(json)
                    return _json_response(200, app)

        return _json_response(404, {"detail": "Not found."})

    def close(self):
        pass


def _json_response(status_code, payload=None):
    response = requests.Response()
    response.status_code = status_code
    response.encoding = "utf-8"
    response._content = b"" if payload is None else json.dumps(payload).encode("utf-8")
    return response


def make_message(
    message_id,
    subject,
    sender="jobs@example.com",
    date="2024-03-01T10:00:00Z",
    snippet="",
    body=None,
    is_read=False,
):
    """Build a Message from provider-style fields."""
    return Message.from_payload(
        {
            "id": message_id,
            "subject": subject,
            "sender": sender,
            "date": date,
            "snippet": snippet,
            "body": body,
            "isRead": is_read,
        }
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    """
    Throwaway in-memory key/value store.

    Yields:
        KeyValueStore
    """
    kv = KeyValueStore(IN_MEMORY)
    yield kv
    kv.close()


@pytest.fixture
def signed_in_store(store):
    store.set(AUTH_TOKEN_KEY, "test-token")
    return store


@pytest.fixture
def credentials(signed_in_store):
    return CredentialGate(signed_in_store)


@pytest.fixture
def mock_client():
    """
    Mock provider client for testing without HTTP calls.

    Returns:
        Mock: Mocked ProviderClient with no accounts and no messages
    """
    client = Mock(spec=ProviderClient)
    client.list_accounts.return_value = []
    client.list_messages.return_value = []
    client.oauth_init.return_value = "https://accounts.example.com/o/oauth2/auth?state=abc"
    return client


@pytest.fixture
def gmail_account():
    return EmailAccount(
        id=7, provider="gmail", email_address="me@gmail.com", connected_at="2024-02-01T09:00:00Z"
    )


@pytest.fixture
def outlook_account():
    return EmailAccount(id=8, provider="outlook", email_address="me@outlook.com")


@pytest.fixture
def sample_messages():
    """
    A small mailbox covering each category.

    Returns:
        list[Message]: newest first
    """
    return [
        make_message(
            "m4",
            "Interview invitation - Acme Corp",
            sender="talent@acme.com",
            date="2024-03-04T09:00:00Z",
        ),
        make_message(
            "m3",
            "Your application to Globex",
            sender="noreply@globex.com",
            date="2024-03-03T09:00:00Z",
            snippet="Thank you for applying. We are reviewing your resume.",
        ),
        make_message(
            "m2",
            "Acme Corp: application received",
            sender="noreply@acme.com",
            date="2024-03-02T09:00:00Z",
        ),
        make_message(
            "m1",
            "Weekly newsletter",
            sender="news@example.com",
            date="2024-03-01T09:00:00Z",
        ),
    ]


@pytest.fixture
def sample_applications():
    """
    Application records as returned by the application store.

    Returns:
        list[ApplicationRecord]
    """
    return [
        ApplicationRecord(
            id=1,
            company="Acme Corp",
            job_title="Backend Engineer",
            job_board="LinkedIn",
            date_applied="2024-02-20",
            status="applied",
        ),
        ApplicationRecord(
            id=2,
            company="Globex",
            job_title="Data Engineer",
            job_board="Indeed",
            date_applied="2024-02-25",
            status="applied",
            notes="Referral from Sam",
        ),
        ApplicationRecord(
            id=3,
            company="Initech",
            job_title="Platform Engineer",
            date_applied="2024-02-10",
            status="applied",
            notes="Ping hiring manager",
        ),
    ]


@pytest.fixture
def test_config():
    """Configuration pointing at an in-memory store."""
    return Config.from_dict(
        {
            "api": {"base_url": "http://provider.test", "timeout": 5},
            "storage": {"path": IN_MEMORY},
            "email": {"default_provider": "gmail", "max_results": 20, "calls_per_minute": 60},
            "oauth": {"poll_interval_seconds": 1, "success_message_seconds": 5},
        }
    )


@pytest.fixture
def fake_session():
    return FakeProviderSession()
