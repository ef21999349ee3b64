"""
Account Directory - the connected email accounts and how they are loaded

Startup policy:
- A fresh cached snapshot is surfaced immediately and a background refresh
  is started; its result silently replaces the accounts and the cache once
  the owner applies it with sync().
- Without a fresh snapshot the refresh runs in the foreground and a failure
  sets a user-visible error string.

Network I/O for the background refresh happens on a worker thread; the
result is only ever applied on the thread that calls sync(), so the account
list and cache are mutated from a single thread.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import List, Optional

from jobpulse.constants import DEFAULT_PROVIDER
from jobpulse.email.cache import AccountCache
from jobpulse.email.client import ProviderClient
from jobpulse.errors import AuthExpired, AuthRequired, JobPulseError
from jobpulse.models import EmailAccount

logger = logging.getLogger(__name__)


class AccountDirectory:
    """Connected accounts, backed by the account cache."""

    def __init__(
        self,
        client: ProviderClient,
        cache: AccountCache,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.client = client
        self.cache = cache
        self.accounts: List[EmailAccount] = []
        self.error: Optional[str] = None
        self._executor = executor
        self._pending: Optional[Future] = None

    def load(self) -> List[EmailAccount]:
        """
        Surface accounts on startup.

        Returns:
            The cached accounts (refresh continues in the background), or the
            result of a foreground refresh
        """
        cached = self.cache.read()
        if cached is not None:
            logger.debug(f"Using {len(cached)} cached email account(s)")
            self.accounts = cached
            self._start_background_refresh()
            return self.accounts

        self.refresh()
        return self.accounts

    def refresh(self) -> bool:
        """
        Pull the account list in the foreground.

        Returns:
            True on success; on failure ``error`` holds a user-facing message
            and the current accounts are kept
        """
        # A background result still in flight predates this one
        self._discard_pending()

        try:
            accounts = self.client.list_accounts()
        except AuthExpired as e:
            self.error = str(e)
            return False
        except AuthRequired:
            self.error = "Authentication required"
            return False
        except JobPulseError as e:
            logger.error(f"Error fetching email accounts: {e}")
            self.error = "Failed to fetch email accounts"
            return False

        self._apply(accounts)
        return True

    def _discard_pending(self):
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _apply(self, accounts: List[EmailAccount]):
        self.accounts = accounts
        self.cache.write(accounts)
        self.error = None

    def _start_background_refresh(self):
        if self._pending is not None and not self._pending.done():
            return
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="account-refresh")
        self._pending = self._executor.submit(self.client.list_accounts)

    @property
    def refresh_pending(self) -> bool:
        return self._pending is not None

    def sync(self) -> bool:
        """
        Apply a finished background refresh.

        Returns:
            True if fresh accounts were applied. Background failures keep the
            cached accounts and are only logged.
        """
        if self._pending is None or not self._pending.done():
            return False

        future, self._pending = self._pending, None
        try:
            accounts = future.result()
        except JobPulseError as e:
            logger.info(f"Background account refresh failed, keeping cached accounts: {e}")
            return False

        self._apply(accounts)
        logger.debug(f"Background refresh applied {len(accounts)} email account(s)")
        return True

    def wait_for_refresh(self, timeout: Optional[float] = None) -> bool:
        """Block until a pending background refresh finishes, then apply it."""
        if self._pending is None:
            return False
        done, _ = wait([self._pending], timeout=timeout)
        if not done:
            return False
        return self.sync()

    def invalidate(self, *extra_keys: str):
        """Forget the cached snapshot (the in-memory list stays until the next refresh)."""
        self.cache.invalidate(*extra_keys)

    def active_account(self, provider: Optional[str] = None) -> Optional[EmailAccount]:
        """
        The account fetches run against.

        With a provider, the first account of that provider. Without one, the
        first Gmail account, else the single connected account.
        """
        if provider:
            return next((a for a in self.accounts if a.provider == provider), None)

        default = next((a for a in self.accounts if a.provider == DEFAULT_PROVIDER), None)
        if default is not None:
            return default
        return self.accounts[0] if len(self.accounts) == 1 else None

    def is_connected(self, provider: Optional[str] = None) -> bool:
        return self.active_account(provider) is not None

    def shutdown(self):
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
