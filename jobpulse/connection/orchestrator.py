"""
Connection Orchestrator - drives the OAuth popup handshake

connect() runs the synchronous part of an attempt (token check, auth URL,
popup) and leaves the session in AwaitingAuthorization. From there the owner
calls poll() once per poll interval, or wait() to loop until a terminal
state. Each poll handles queued popup messages first, then checks whether
the popup was closed, then expires the success message.

Side effects stay within the account directory/cache, the persisted
"in progress" flag and "connected at" marker, and the session's status text.
Protocol failures never raise out of this class.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from jobpulse.auth import CredentialGate
from jobpulse.connection.channel import ChannelMessage, MessageChannel
from jobpulse.connection.popup import (
    BrowserPopupOpener,
    PopupHandle,
    WindowGeometry,
    centered_popup_features,
)
from jobpulse.connection.state import (
    AccountsRefreshed,
    AccountsRefreshFailed,
    AttemptAbandoned,
    AuthMissing,
    AuthUrlReceived,
    ConnectionEvent,
    ConnectionSession,
    ConnectionState,
    ConnectRequested,
    InitFailed,
    ListeningStarted,
    MessageDismissed,
    OAuthFailed,
    OAuthSucceeded,
    PopupClosed,
    PopupOpened,
    PopupWasBlocked,
    transition,
)
from jobpulse.constants import (
    CONNECTED_AT_KEY,
    OAUTH_IN_PROGRESS_KEY,
    POPUP_HEIGHT,
    POPUP_NAME,
    POPUP_POLL_INTERVAL_SECONDS,
    POPUP_WIDTH,
    PROVIDERS,
    SUCCESS_MESSAGE_SECONDS,
)
from jobpulse.email.accounts import AccountDirectory
from jobpulse.email.client import ProviderClient
from jobpulse.errors import AuthRequired, JobPulseError
from jobpulse.logging_config import LogContext
from jobpulse.storage import KeyValueStore

logger = logging.getLogger(__name__)


class ConnectionOrchestrator:
    """Runs OAuth attempts and account disconnects for one hosting view."""

    def __init__(
        self,
        credentials: CredentialGate,
        client: ProviderClient,
        accounts: AccountDirectory,
        store: KeyValueStore,
        channel: Optional[MessageChannel] = None,
        opener=None,
        window: Optional[WindowGeometry] = None,
        popup_size=(POPUP_WIDTH, POPUP_HEIGHT),
        poll_interval: float = POPUP_POLL_INTERVAL_SECONDS,
        success_message_seconds: float = SUCCESS_MESSAGE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            credentials: Bearer token source
            client: Provider endpoints (oauth-init, delete)
            accounts: Directory refreshed when an attempt succeeds
            store: Holds the in-progress flag and connected-at marker
            channel: Popup message inbox (a fresh one is created if omitted)
            opener: Object with ``open(url, name, features) -> handle | None``
            window: Geometry of the host window the popup is centered on
            popup_size: (width, height) of the popup
            poll_interval: Seconds between popup-closed checks in wait()
            success_message_seconds: Lifetime of the "connected" message
            clock: Monotonic time source
            sleep: Sleep used by wait()
        """
        self.credentials = credentials
        self.client = client
        self.accounts = accounts
        self.store = store
        self.channel = channel or MessageChannel()
        self.opener = opener or BrowserPopupOpener()
        self.window = window or WindowGeometry()
        self.popup_size = popup_size
        self.poll_interval = poll_interval
        self.success_message_seconds = success_message_seconds
        self._clock = clock
        self._sleep = sleep

        self.session = ConnectionSession()
        self.notice: Optional[str] = None
        self._popup: Optional[PopupHandle] = None
        self._message_expires_at: Optional[float] = None

        # Listener lives as long as the orchestrator; removed in teardown()
        self.channel.open()

    # ------------------------------------------------------------------
    # State handling
    # ------------------------------------------------------------------

    def _dispatch(self, event: ConnectionEvent) -> ConnectionSession:
        previous = self.session
        self.session = transition(previous, event)
        if self.session is previous:
            logger.debug(f"Ignored {type(event).__name__} in state {previous.state.value}")
            return self.session

        logger.debug(
            f"{type(event).__name__}: {previous.state.value} -> {self.session.state.value} "
            f"(progress {self.session.progress})"
        )
        self._persist(previous)
        return self.session

    def _persist(self, previous: ConnectionSession):
        """Mirror the session's in-progress flag and connected marker into the store."""
        updates = {}
        if self.session.in_progress != previous.in_progress:
            updates[OAUTH_IN_PROGRESS_KEY] = "true" if self.session.in_progress else None
        if (
            self.session.state == ConnectionState.CONNECTED
            and previous.state != ConnectionState.CONNECTED
        ):
            updates[CONNECTED_AT_KEY] = datetime.now(timezone.utc).isoformat()
        if updates:
            self.store.update(updates)

    @property
    def status_text(self) -> Optional[str]:
        """Message to show the user: the session's, else the last disconnect notice."""
        return self.session.message or self.notice

    @property
    def connected_at(self) -> Optional[str]:
        return self.store.get(CONNECTED_AT_KEY)

    # ------------------------------------------------------------------
    # Connect
    # ------------------------------------------------------------------

    def connect(
        self, provider: str = "gmail", window: Optional[WindowGeometry] = None
    ) -> ConnectionSession:
        """
        Start an OAuth attempt.

        Returns:
            The session: AwaitingAuthorization when the popup is up, Failed
            when the URL or popup could not be obtained, Idle (with a sign-in
            message) when there is no bearer token
        """
        if provider not in PROVIDERS:
            raise ValueError(f"Unsupported provider: {provider}")

        if self.session.is_active:
            logger.warning(f"Connection attempt already running ({self.session.state.value})")
            return self.session

        self.notice = None
        self._message_expires_at = None

        with LogContext(logger, provider=provider):
            try:
                self.credentials.token()
            except AuthRequired as e:
                logger.info("Connect requested without a bearer token")
                return self._dispatch(AuthMissing(str(e)))

            self._dispatch(ConnectRequested(provider))
            # Messages from an earlier attempt must not finalize this one
            self.channel.drain()
            logger.info(f"Starting {provider} OAuth connection")

            try:
                oauth_url = self.client.oauth_init(provider)
            except JobPulseError as e:
                logger.warning(f"OAuth initiation failed: {e}")
                return self._dispatch(InitFailed(str(e)))
            logger.debug(f"Opening authorization popup at {oauth_url}")
            self._dispatch(AuthUrlReceived(oauth_url))

            width, height = self.popup_size
            features = centered_popup_features(window or self.window, width, height)
            popup = self.opener.open(oauth_url, POPUP_NAME, features)
            if popup is None:
                logger.warning("OAuth popup was blocked")
                return self._dispatch(PopupWasBlocked())

            self._popup = popup
            self._dispatch(PopupOpened())
            return self._dispatch(ListeningStarted())

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------

    def poll(self) -> ConnectionSession:
        """
        One tick: handle popup messages, check the popup, expire the message.
        """
        for message in self.channel.drain():
            self._handle_message(message)

        if (
            self.session.state == ConnectionState.AWAITING_AUTHORIZATION
            and self._popup is not None
            and self._popup.closed
        ):
            logger.info("OAuth popup closed before authorization finished")
            self._popup = None
            self._dispatch(PopupClosed())

        if self._message_expires_at is not None and self._clock() >= self._message_expires_at:
            self._message_expires_at = None
            self._dispatch(MessageDismissed())

        return self.session

    def wait(self) -> ConnectionSession:
        """
        Poll until the attempt reaches a terminal state.

        There is no timeout: an open popup keeps the attempt alive until the
        user completes or closes it.
        """
        while self.session.is_active:
            self._sleep(self.poll_interval)
            self.poll()
        return self.session

    def _handle_message(self, message: ChannelMessage):
        if message.is_success:
            if self._dispatch(OAuthSucceeded()).state != ConnectionState.FINALIZING:
                return
            self._popup = None
            if self.accounts.refresh():
                self._dispatch(AccountsRefreshed())
            else:
                self._dispatch(AccountsRefreshFailed(self.accounts.error or "unknown error"))
            if self.session.state == ConnectionState.CONNECTED:
                logger.info(f"{self.session.provider} account connected")
                self._message_expires_at = self._clock() + self.success_message_seconds
        else:
            if self._dispatch(OAuthFailed(message.error)).state == ConnectionState.FAILED:
                logger.warning(f"OAuth error reported by popup: {message.error}")
                self._popup = None

    def popup_closed(self, name: Optional[str] = None) -> bool:
        """Record that the popup went away (called from the callback server)."""
        popup = self._popup
        if popup is None or (name and popup.name != name):
            return False
        popup.mark_closed()
        return True

    # ------------------------------------------------------------------
    # Startup / teardown
    # ------------------------------------------------------------------

    def recover_abandoned(self) -> bool:
        """
        Detect an attempt that was interrupted by a restart.

        Returns:
            True if a leftover in-progress flag was found and cleared
        """
        if self.store.get(OAUTH_IN_PROGRESS_KEY) != "true" or self.session.is_active:
            return False

        logger.info("Found an unfinished OAuth attempt from a previous run")
        self.store.delete(OAUTH_IN_PROGRESS_KEY)
        self._dispatch(AttemptAbandoned())
        return True

    def teardown(self):
        """Remove the message listener."""
        self.channel.close()
        self._popup = None

    # ------------------------------------------------------------------
    # Disconnect
    # ------------------------------------------------------------------

    def disconnect(self, account_id) -> bool:
        """
        Disconnect an account on the provider, then reload the account list.

        Nothing is removed locally unless the provider confirmed the delete.

        Returns:
            True on success; ``notice`` holds the outcome either way
        """
        try:
            self.client.delete_account(account_id)
        except JobPulseError as e:
            logger.error(f"Failed to disconnect account {account_id}: {e}")
            self.notice = f"Failed to disconnect account: {e}"
            return False

        self.accounts.invalidate(CONNECTED_AT_KEY)
        self.accounts.refresh()
        self.notice = "Email account disconnected."
        return True
