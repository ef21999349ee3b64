"""
Service container - wires JobPulse's components together

One EmailSyncService is built per hosting view (CLI run, callback server).
Everything it owns is passed in or constructed here; nothing is kept in
module-level state, so tests can build as many isolated services as they
need.

Usage:
    config = load_config()
    service = create_service(config)
    service.start()
    service.orchestrator.connect("gmail")
    service.orchestrator.wait()
    service.fetcher.fetch("interview")
    service.tracker.refresh()
    service.shutdown()
"""

import logging
import time
from typing import Callable, Optional

import requests

from jobpulse.applications import ApplicationStore
from jobpulse.auth import CredentialGate
from jobpulse.config import Config
from jobpulse.connection import ConnectionOrchestrator, MessageChannel
from jobpulse.email import AccountCache, AccountDirectory, EmailFetcher, ProviderClient
from jobpulse.resilience import RateLimiter
from jobpulse.storage import KeyValueStore
from jobpulse.tracker import ApplicationTracker

logger = logging.getLogger(__name__)


class EmailSyncService:
    """Holds one instance of every JobPulse component."""

    def __init__(
        self,
        config: Config,
        store: KeyValueStore,
        credentials: CredentialGate,
        client: ProviderClient,
        accounts: AccountDirectory,
        orchestrator: ConnectionOrchestrator,
        fetcher: EmailFetcher,
        tracker: ApplicationTracker,
    ):
        self.config = config
        self.store = store
        self.credentials = credentials
        self.client = client
        self.accounts = accounts
        self.orchestrator = orchestrator
        self.fetcher = fetcher
        self.tracker = tracker

    @property
    def channel(self) -> MessageChannel:
        return self.orchestrator.channel

    def start(self):
        """Recover an abandoned OAuth attempt, then surface the account list."""
        if self.orchestrator.recover_abandoned():
            logger.info("Previous email connection attempt was cancelled")
        if self.credentials.is_signed_in:
            self.accounts.load()
        else:
            logger.info("Not signed in; skipping account load")

    def status(self) -> dict:
        """Snapshot for the status command and the /api/connection route."""
        return {
            "signed_in": self.credentials.is_signed_in,
            "session": self.orchestrator.session.to_dict(),
            "status_text": self.orchestrator.status_text,
            "accounts": [a.to_dict() for a in self.accounts.accounts],
            "accounts_error": self.accounts.error,
            "connected_at": self.orchestrator.connected_at,
        }

    def shutdown(self):
        self.orchestrator.teardown()
        self.accounts.shutdown()
        self.store.close()


def create_service(
    config: Config,
    store: Optional[KeyValueStore] = None,
    session: Optional[requests.Session] = None,
    opener=None,
    clock: Callable[[], float] = time.time,
    monotonic: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    executor=None,
) -> EmailSyncService:
    """
    Build a service from configuration.

    Args:
        config: Loaded configuration
        store: Key/value store (defaults to the configured SQLite file)
        session: requests session shared by the HTTP clients
        opener: Popup opener (defaults to the system browser)
        clock: Wall clock used for the account cache
        monotonic: Monotonic clock used for message expiry and rate limiting
        sleep: Sleep used while waiting on the popup and rate limiter
        executor: Executor for background account refreshes
    """
    if store is None:
        store = KeyValueStore(config.store_path)
    session = session or requests.Session()
    credentials = CredentialGate(store)

    rate_limiter = RateLimiter(
        calls_per_minute=config.calls_per_minute,
        name="email-listing",
        clock=monotonic,
        sleep=sleep,
    )
    client = ProviderClient(
        config.api_base_url,
        credentials,
        session=session,
        timeout=config.api_timeout,
        rate_limiter=rate_limiter,
    )
    applications = ApplicationStore(
        config.api_base_url, credentials, session=session, timeout=config.api_timeout
    )

    cache = AccountCache(store, ttl_seconds=config.account_cache_seconds, clock=clock)
    accounts = AccountDirectory(client, cache, executor=executor)

    orchestrator = ConnectionOrchestrator(
        credentials,
        client,
        accounts,
        store,
        opener=opener,
        popup_size=config.popup_size,
        poll_interval=config.poll_interval,
        success_message_seconds=config.success_message_seconds,
        clock=monotonic,
        sleep=sleep,
    )
    fetcher = EmailFetcher(client, accounts, default_max_results=config.max_results)
    tracker = ApplicationTracker(applications, fetcher)

    logger.debug(f"Service created for {config.api_base_url} (store: {store.db_path})")
    return EmailSyncService(
        config=config,
        store=store,
        credentials=credentials,
        client=client,
        accounts=accounts,
        orchestrator=orchestrator,
        fetcher=fetcher,
        tracker=tracker,
    )
