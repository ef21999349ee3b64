"""
Tests for the rate limiter.
"""

import os
import sys

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from jobpulse.resilience import RateLimiter


@pytest.fixture
def limiter(clock):
    return RateLimiter(calls_per_minute=4, burst_size=2, clock=clock, sleep=clock.sleep)


def test_burst_is_immediate(limiter, clock):
    """Test calls within the burst allowance do not wait."""
    start = clock()

    assert limiter.acquire()
    assert limiter.acquire()

    assert clock() == start


def test_spacing_after_burst(limiter, clock):
    """Test the call after a burst waits for the minimum interval."""
    start = clock()
    limiter.acquire()
    limiter.acquire()

    assert limiter.acquire()

    assert clock() - start >= limiter.min_interval


def test_window_limit(clock):
    """Test no more than calls_per_minute calls land in one window."""
    limiter = RateLimiter(calls_per_minute=3, burst_size=3, clock=clock, sleep=clock.sleep)
    start = clock()

    for _ in range(4):
        assert limiter.acquire()

    assert clock() - start >= RateLimiter.WINDOW_SECONDS


def test_timeout(limiter):
    """Test acquire gives up when the wait exceeds the timeout."""
    limiter.acquire()
    limiter.acquire()

    assert limiter.acquire(timeout=1) is False


def test_rejects_non_positive_rate():
    """Test a zero rate is a configuration error."""
    with pytest.raises(ValueError):
        RateLimiter(calls_per_minute=0)
