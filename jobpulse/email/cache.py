"""
Account Cache - time-boxed snapshot of connected email accounts

Read on startup so the account list can be shown without a network round
trip. The blob and its timestamp are written and cleared together.
"""

import json
import logging
import time
from typing import Callable, List, Optional

from jobpulse.constants import (
    ACCOUNT_CACHE_TTL_SECONDS,
    ACCOUNTS_CACHE_KEY,
    ACCOUNTS_CACHE_TIMESTAMP_KEY,
)
from jobpulse.errors import InvalidPayload
from jobpulse.models import EmailAccount
from jobpulse.storage import KeyValueStore

logger = logging.getLogger(__name__)


class AccountCache:
    """Persisted account snapshot with a fixed freshness window."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: float = ACCOUNT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def read(self) -> Optional[List[EmailAccount]]:
        """
        Return the cached accounts if the snapshot is younger than the window.

        Stale or unreadable snapshots are evicted and read as None.
        """
        raw = self.store.get(ACCOUNTS_CACHE_KEY)
        written_at = self.store.get(ACCOUNTS_CACHE_TIMESTAMP_KEY)
        if raw is None or written_at is None:
            return None

        try:
            age = self._clock() - float(written_at)
            accounts = [EmailAccount.from_payload(entry) for entry in json.loads(raw)]
        except (ValueError, TypeError, InvalidPayload) as e:
            logger.warning(f"Discarding unreadable account cache: {e}")
            self.invalidate()
            return None

        if age < 0 or age >= self.ttl_seconds:
            logger.debug(f"Account cache expired ({age:.0f}s old)")
            self.invalidate()
            return None

        return accounts

    def write(self, accounts: List[EmailAccount]):
        """Persist the snapshot and its timestamp as one update."""
        blob = json.dumps([account.to_dict() for account in accounts])
        self.store.update(
            {
                ACCOUNTS_CACHE_KEY: blob,
                ACCOUNTS_CACHE_TIMESTAMP_KEY: repr(self._clock()),
            }
        )

    def invalidate(self, *extra_keys: str):
        """Clear the snapshot, plus any extra keys, in one transaction."""
        self.store.delete(ACCOUNTS_CACHE_KEY, ACCOUNTS_CACHE_TIMESTAMP_KEY, *extra_keys)
