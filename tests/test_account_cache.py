"""
Tests for the account cache and the account directory's loading policy.
"""

import os
import sys
from concurrent.futures import Future
from unittest.mock import Mock

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from jobpulse.constants import ACCOUNTS_CACHE_KEY, ACCOUNTS_CACHE_TIMESTAMP_KEY
from jobpulse.email.accounts import AccountDirectory
from jobpulse.email.cache import AccountCache
from jobpulse.errors import AuthExpired, AuthRequired, ProviderError


class ImmediateExecutor:
    """Executor that runs submitted work on the calling thread."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait=True):
        pass


class DeferredExecutor:
    """Executor whose submitted work is already running and finished by the test."""

    def __init__(self):
        self.futures = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        future.set_running_or_notify_cancel()
        self.futures.append(future)
        return future

    def shutdown(self, wait=True):
        pass


@pytest.fixture
def cache(store, clock):
    return AccountCache(store, clock=clock)


class TestAccountCache:
    def test_fresh_within_window(self, cache, clock, gmail_account):
        """Test a snapshot written 9 minutes ago is returned."""
        cache.write([gmail_account])
        clock.advance(9 * 60)

        assert cache.read() == [gmail_account]

    def test_stale_after_window(self, cache, store, clock, gmail_account):
        """Test a snapshot written 11 minutes ago is evicted."""
        cache.write([gmail_account])
        clock.advance(11 * 60)

        assert cache.read() is None
        assert store.get(ACCOUNTS_CACHE_KEY) is None
        assert store.get(ACCOUNTS_CACHE_TIMESTAMP_KEY) is None

    def test_empty_cache(self, cache):
        """Test reading with nothing written."""
        assert cache.read() is None

    def test_corrupt_blob_is_evicted(self, cache, store, clock):
        """Test an unreadable snapshot reads as None and is removed."""
        store.update({ACCOUNTS_CACHE_KEY: "{not json", ACCOUNTS_CACHE_TIMESTAMP_KEY: repr(clock())})

        assert cache.read() is None
        assert store.get(ACCOUNTS_CACHE_KEY) is None

    def test_timestamp_in_future_is_evicted(self, cache, clock, gmail_account):
        """Test a snapshot dated after now is treated as invalid."""
        cache.write([gmail_account])
        clock.advance(-60)

        assert cache.read() is None

    def test_write_stores_blob_and_timestamp_together(self, cache, store, clock, gmail_account):
        """Test both keys are present after a write and gone after invalidate."""
        cache.write([gmail_account])
        assert store.get(ACCOUNTS_CACHE_KEY) is not None
        assert float(store.get(ACCOUNTS_CACHE_TIMESTAMP_KEY)) == clock()

        cache.invalidate()
        assert store.get(ACCOUNTS_CACHE_KEY) is None
        assert store.get(ACCOUNTS_CACHE_TIMESTAMP_KEY) is None


class TestAccountDirectory:
    def test_load_uses_cache_then_refreshes(
        self, cache, mock_client, gmail_account, outlook_account
    ):
        """Test cached accounts are surfaced first and replaced by the refresh."""
        cache.write([gmail_account])
        mock_client.list_accounts.return_value = [gmail_account, outlook_account]
        executor = ImmediateExecutor()
        directory = AccountDirectory(mock_client, cache, executor=executor)

        assert directory.load() == [gmail_account]
        assert directory.refresh_pending

        assert directory.sync() is True
        assert directory.accounts == [gmail_account, outlook_account]
        assert cache.read() == [gmail_account, outlook_account]
        assert executor.submitted == 1

    def test_background_failure_keeps_cached(self, cache, mock_client, gmail_account):
        """Test a failed background refresh is silent and keeps the snapshot."""
        cache.write([gmail_account])
        mock_client.list_accounts.side_effect = ProviderError()
        directory = AccountDirectory(mock_client, cache, executor=ImmediateExecutor())

        directory.load()

        assert directory.sync() is False
        assert directory.accounts == [gmail_account]
        assert directory.error is None
        assert not directory.refresh_pending

    def test_late_background_result_is_discarded(
        self, cache, mock_client, gmail_account, outlook_account
    ):
        """Test a background refresh started before a foreground one is never applied."""
        cache.write([gmail_account, outlook_account])
        executor = DeferredExecutor()
        directory = AccountDirectory(mock_client, cache, executor=executor)
        directory.load()

        mock_client.list_accounts.return_value = [outlook_account]
        assert directory.refresh() is True
        executor.futures[0].set_result([gmail_account, outlook_account])

        assert directory.sync() is False
        assert directory.accounts == [outlook_account]
        assert cache.read() == [outlook_account]
        assert not directory.refresh_pending

    def test_load_without_cache_refreshes_in_foreground(self, cache, mock_client, gmail_account):
        """Test an empty cache triggers a blocking refresh that fills it."""
        mock_client.list_accounts.return_value = [gmail_account]
        directory = AccountDirectory(mock_client, cache, executor=ImmediateExecutor())

        assert directory.load() == [gmail_account]
        assert not directory.refresh_pending
        assert cache.read() == [gmail_account]

    @pytest.mark.parametrize(
        "error,message",
        [
            (AuthRequired(), "Authentication required"),
            (AuthExpired(status_code=401), "Authentication expired. Please sign in again."),
            (ProviderError(), "Failed to fetch email accounts"),
        ],
    )
    def test_foreground_failure_sets_error(self, cache, mock_client, error, message):
        """Test foreground failures produce a user-facing error."""
        mock_client.list_accounts.side_effect = error
        directory = AccountDirectory(mock_client, cache)

        directory.load()

        assert directory.error == message
        assert directory.accounts == []

    def test_wait_for_refresh(self, cache, mock_client, gmail_account):
        """Test waiting applies a finished background refresh."""
        cache.write([])
        mock_client.list_accounts.return_value = [gmail_account]
        directory = AccountDirectory(mock_client, cache, executor=ImmediateExecutor())

        directory.load()

        assert directory.wait_for_refresh(timeout=1) is True
        assert directory.accounts == [gmail_account]

    def test_active_account_selection(self, cache, gmail_account, outlook_account):
        """Test which account fetches run against."""
        directory = AccountDirectory(Mock(), cache)

        directory.accounts = [outlook_account, gmail_account]
        assert directory.active_account() == gmail_account
        assert directory.active_account("outlook") == outlook_account

        directory.accounts = [outlook_account]
        assert directory.active_account() == outlook_account
        assert directory.active_account("gmail") is None

        directory.accounts = []
        assert directory.active_account() is None
        assert not directory.is_connected()
