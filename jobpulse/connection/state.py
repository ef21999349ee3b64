"""
Connection state machine for the OAuth popup flow.

    Idle -> Initiating -> AwaitingAuthorization -> Finalizing -> Connected
    Idle -> Initiating -> Failed
    ...  -> AwaitingAuthorization -> Cancelled

``transition(session, event)`` is a pure function: it never performs I/O and
returns the session unchanged for events that make no sense in the current
state (a late popup message, a duplicate close notification, ...). Progress
never decreases until a terminal state is reached.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from jobpulse.errors import AuthRequired, PopupBlocked, UserCancelled


class ConnectionState(str, Enum):
    IDLE = "idle"
    INITIATING = "initiating"
    AWAITING_AUTHORIZATION = "awaiting_authorization"
    FINALIZING = "finalizing"
    CONNECTED = "connected"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset(
    {ConnectionState.CONNECTED, ConnectionState.FAILED, ConnectionState.CANCELLED}
)
ACTIVE_STATES = frozenset(
    {
        ConnectionState.INITIATING,
        ConnectionState.AWAITING_AUTHORIZATION,
        ConnectionState.FINALIZING,
    }
)


def provider_label(provider: Optional[str]) -> str:
    return provider.title() if provider else "Email"


@dataclass(frozen=True)
class ConnectionSession:
    """Snapshot of one OAuth attempt."""

    provider: Optional[str] = None
    state: ConnectionState = ConnectionState.IDLE
    progress: int = 0
    in_progress: bool = False
    message: Optional[str] = None
    is_error: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    def to_dict(self) -> dict:
        return {
            "provider": self.provider,
            "state": self.state.value,
            "progress": self.progress,
            "in_progress": self.in_progress,
            "message": self.message,
            "is_error": self.is_error,
        }


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class ConnectionEvent:
    """Base class for state machine events."""


@dataclass(frozen=True)
class ConnectRequested(ConnectionEvent):
    provider: str


@dataclass(frozen=True)
class AuthMissing(ConnectionEvent):
    message: str = AuthRequired.default_message


@dataclass(frozen=True)
class AuthUrlReceived(ConnectionEvent):
    url: str


@dataclass(frozen=True)
class InitFailed(ConnectionEvent):
    message: str


@dataclass(frozen=True)
class PopupOpened(ConnectionEvent):
    pass


@dataclass(frozen=True)
class PopupWasBlocked(ConnectionEvent):
    message: str = PopupBlocked.default_message


@dataclass(frozen=True)
class ListeningStarted(ConnectionEvent):
    pass


@dataclass(frozen=True)
class OAuthSucceeded(ConnectionEvent):
    pass


@dataclass(frozen=True)
class OAuthFailed(ConnectionEvent):
    error: str


@dataclass(frozen=True)
class PopupClosed(ConnectionEvent):
    pass


@dataclass(frozen=True)
class AccountsRefreshed(ConnectionEvent):
    pass


@dataclass(frozen=True)
class AccountsRefreshFailed(ConnectionEvent):
    message: str


@dataclass(frozen=True)
class AttemptAbandoned(ConnectionEvent):
    """A persisted in-progress flag was found with no live attempt behind it."""


@dataclass(frozen=True)
class MessageDismissed(ConnectionEvent):
    pass


# ---------------------------------------------------------------------------
# Transition function
# ---------------------------------------------------------------------------


def _fail(session: ConnectionSession, message: str) -> ConnectionSession:
    return replace(
        session,
        state=ConnectionState.FAILED,
        progress=0,
        in_progress=False,
        message=message,
        is_error=True,
    )


def _advance(session: ConnectionSession, progress: int, state=None) -> ConnectionSession:
    return replace(
        session,
        state=state or session.state,
        progress=max(session.progress, progress),
    )


def transition(session: ConnectionSession, event: ConnectionEvent) -> ConnectionSession:
    """
    Apply ``event`` to ``session``.

    Returns:
        The next session (the same object when the event does not apply)
    """
    state = session.state

    if isinstance(event, ConnectRequested):
        if session.is_active:
            return session
        return ConnectionSession(
            provider=event.provider,
            state=ConnectionState.INITIATING,
            progress=0,
            in_progress=True,
        )

    if isinstance(event, AuthMissing):
        if session.is_active:
            return session
        return ConnectionSession(message=event.message, is_error=True)

    if isinstance(event, AttemptAbandoned):
        if state != ConnectionState.IDLE:
            return session
        return replace(
            session,
            state=ConnectionState.CANCELLED,
            progress=0,
            in_progress=False,
            message=UserCancelled.default_message,
            is_error=False,
        )

    if state == ConnectionState.INITIATING:
        if isinstance(event, AuthUrlReceived):
            return _advance(session, 20)
        if isinstance(event, InitFailed):
            return _fail(session, event.message)
        if isinstance(event, PopupOpened) and session.progress >= 20:
            return _advance(session, 40)
        if isinstance(event, PopupWasBlocked):
            return _fail(session, event.message)
        if isinstance(event, ListeningStarted) and session.progress >= 40:
            return _advance(session, 60, ConnectionState.AWAITING_AUTHORIZATION)
        return session

    if state == ConnectionState.AWAITING_AUTHORIZATION:
        if isinstance(event, OAuthSucceeded):
            return _advance(session, 80, ConnectionState.FINALIZING)
        if isinstance(event, OAuthFailed):
            label = provider_label(session.provider)
            return _fail(session, f"{label} authentication failed: {event.error}")
        if isinstance(event, PopupClosed) and session.in_progress:
            return replace(
                session,
                state=ConnectionState.CANCELLED,
                progress=0,
                in_progress=False,
                message=UserCancelled.default_message,
                is_error=False,
            )
        return session

    if state == ConnectionState.FINALIZING:
        label = provider_label(session.provider)
        if isinstance(event, AccountsRefreshed):
            return replace(
                _advance(session, 100, ConnectionState.CONNECTED),
                in_progress=False,
                message=f"{label} connected successfully!",
                is_error=False,
            )
        if isinstance(event, AccountsRefreshFailed):
            # Authorization already succeeded on the provider side
            return replace(
                _advance(session, 100, ConnectionState.CONNECTED),
                in_progress=False,
                message=f"{label} connected, but the account list could not be refreshed: "
                f"{event.message}",
                is_error=False,
            )
        return session

    if state == ConnectionState.CONNECTED and isinstance(event, MessageDismissed):
        return replace(session, message=None)

    return session
