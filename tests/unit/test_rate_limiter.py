"""
Tests for the rate limiter module.
"""

import threading
from unittest.mock import patch

import pytest

from pollguard.clock import ManualClock
from pollguard.rate_limiter import RateLimiter, RateLimitEntry, normalize_identifier


@pytest.fixture
def clock():
    return ManualClock(0)


@pytest.fixture
def limiter(clock):
    """Limiter matching the documented three-attempt scenario."""
    return RateLimiter(max_attempts=3, window_ms=1000, block_duration_ms=2000, clock=clock)


class TestRateLimiterInit:
    """Tests for RateLimiter construction."""

    def test_init_defaults(self):
        """Defaults match the authentication limiter."""
        limiter = RateLimiter()
        assert limiter.max_attempts == 5
        assert limiter.window_ms == 15 * 60 * 1000
        assert limiter.block_duration_ms == 30 * 60 * 1000

    def test_from_settings_converts_seconds(self):
        """Should convert second-based settings to milliseconds."""
        limiter = RateLimiter.from_settings(max_attempts=100, window_seconds=60, block_seconds=300)
        assert limiter.max_attempts == 100
        assert limiter.window_ms == 60_000
        assert limiter.block_duration_ms == 300_000

    def test_rejects_invalid_configuration(self):
        """Should refuse nonsensical limits."""
        with pytest.raises(ValueError):
            RateLimiter(max_attempts=0)
        with pytest.raises(ValueError):
            RateLimiter(window_ms=0)

    def test_instances_are_independent(self, clock):
        """Two limiters never share state."""
        auth = RateLimiter(max_attempts=1, clock=clock)
        general = RateLimiter(max_attempts=1, clock=clock)

        auth.record_failure("1.2.3.4")
        auth.record_failure("1.2.3.4")

        assert auth.is_allowed("1.2.3.4") is False
        assert general.is_allowed("1.2.3.4") is True


class TestIsAllowed:
    """Tests for the admission decision."""

    def test_unknown_identifier_allowed(self, limiter):
        """Identifiers with no history are allowed."""
        assert limiter.is_allowed("fresh") is True

    def test_allowed_below_threshold(self, limiter):
        """Should allow while failures are under the threshold."""
        limiter.record_failure("x")
        limiter.record_failure("x")
        assert limiter.is_allowed("x") is True

    def test_blocked_at_threshold(self, limiter):
        """Should deny once failures reach the threshold."""
        for _ in range(3):
            limiter.record_failure("x")
        assert limiter.is_allowed("x") is False

    def test_documented_scenario(self, limiter, clock):
        """Failures at t=0,100,200 block until the block expires at t=2200."""
        for t in (0, 100, 200):
            clock.set(t)
            limiter.record_failure("x")

        clock.set(201)
        assert limiter.is_allowed("x") is False

        clock.set(1500)
        assert limiter.is_allowed("x") is False

        # The expiry instant itself is still blocked
        clock.set(2200)
        assert limiter.is_allowed("x") is False

        clock.set(2201)
        assert limiter.is_allowed("x") is True

    def test_block_measured_from_blocking_failure(self, limiter, clock):
        """The block clock starts at the failure that triggered it, not the window start."""
        limiter.record_failure("x")
        clock.set(900)
        limiter.record_failure("x")
        limiter.record_failure("x")

        # Past the original window end, still blocked
        clock.set(1100)
        assert limiter.is_allowed("x") is False

        clock.set(2901)
        assert limiter.is_allowed("x") is True

    def test_failure_while_blocked_restarts_block(self, limiter, clock):
        """A failure during a block pushes the block expiry out."""
        for _ in range(3):
            limiter.record_failure("x")

        clock.set(1500)
        limiter.record_failure("x")

        clock.set(2500)
        assert limiter.is_allowed("x") is False

        clock.set(3501)
        assert limiter.is_allowed("x") is True

    def test_window_expiry_purges_entry(self, limiter, clock):
        """An elapsed window resets the count."""
        limiter.record_failure("x")
        limiter.record_failure("x")

        clock.set(1001)
        assert limiter.is_allowed("x") is True
        assert len(limiter) == 0

    def test_expired_block_purges_entry(self, limiter, clock):
        """Reading an expired block removes it."""
        for _ in range(3):
            limiter.record_failure("x")

        clock.set(5000)
        assert limiter.is_allowed("x") is True
        assert "x" not in limiter._entries

    def test_identifiers_tracked_independently(self, limiter):
        """Blocking one identifier does not affect another."""
        for _ in range(3):
            limiter.record_failure("a")

        assert limiter.is_allowed("a") is False
        assert limiter.is_allowed("b") is True

    def test_single_attempt_limit_denies_after_first_failure(self, clock):
        """With max_attempts=1 the first failure already denies."""
        limiter = RateLimiter(max_attempts=1, window_ms=1000, block_duration_ms=5000, clock=clock)
        limiter.record_failure("x")
        assert limiter.is_allowed("x") is False

        clock.set(1001)
        assert limiter.is_allowed("x") is True


class TestRecordFailure:
    """Tests for failure recording."""

    def test_creates_entry(self, limiter):
        """First failure opens a window."""
        limiter.record_failure("x")
        entry = limiter._entries["x"]
        assert entry == RateLimitEntry(count=1, window_reset_at=1000, blocked=False)

    def test_new_window_after_expiry(self, limiter, clock):
        """A failure after the window elapsed starts over at one."""
        limiter.record_failure("x")
        limiter.record_failure("x")

        clock.set(1500)
        limiter.record_failure("x")

        entry = limiter._entries["x"]
        assert entry.count == 1
        assert entry.window_reset_at == 2500
        assert entry.blocked is False

    def test_block_switches_to_block_clock(self, limiter, clock):
        """Reaching the threshold replaces the window expiry with the block expiry."""
        limiter.record_failure("x")
        limiter.record_failure("x")
        clock.set(300)
        limiter.record_failure("x")

        entry = limiter._entries["x"]
        assert entry.blocked is True
        assert entry.window_reset_at == 2300

    @patch("pollguard.rate_limiter.rate_limit_event")
    def test_logs_block_once(self, mock_event, limiter):
        """Entering the block is logged; further failures are not."""
        for _ in range(5):
            limiter.record_failure("x")

        mock_event.assert_called_once()
        assert mock_event.call_args[0][1] == "x"

    def test_concurrent_failures_counted_exactly(self, clock):
        """Concurrent failures for one identifier are never lost."""
        limiter = RateLimiter(max_attempts=10_000, window_ms=60_000, clock=clock)

        def fail_many():
            for _ in range(500):
                limiter.record_failure("shared")

        threads = [threading.Thread(target=fail_many) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert limiter._entries["shared"].count == 4000


class TestRecordSuccess:
    """Tests for success recording."""

    def test_clears_history(self, limiter):
        """Success resets remaining attempts to the maximum."""
        limiter.record_failure("x")
        limiter.record_failure("x")

        limiter.record_success("x")

        assert limiter.remaining_attempts("x") == 3
        assert limiter.is_allowed("x") is True

    def test_clears_block(self, limiter):
        """Success lifts an active block."""
        for _ in range(3):
            limiter.record_failure("x")

        limiter.record_success("x")
        assert limiter.is_allowed("x") is True

    def test_unknown_identifier(self, limiter):
        """Should not raise for identifiers with no history."""
        limiter.record_success("never-seen")


class TestAdvisoryReads:
    """Tests for remaining_attempts, reset_seconds and status."""

    def test_remaining_attempts(self, limiter):
        """Counts down with each failure and floors at zero."""
        assert limiter.remaining_attempts("x") == 3
        limiter.record_failure("x")
        assert limiter.remaining_attempts("x") == 2
        for _ in range(4):
            limiter.record_failure("x")
        assert limiter.remaining_attempts("x") == 0

    def test_remaining_attempts_after_window(self, limiter, clock):
        """An elapsed window reports the full allowance."""
        limiter.record_failure("x")
        clock.set(1001)
        assert limiter.remaining_attempts("x") == 3

    def test_reset_seconds_rounds_up(self, limiter, clock):
        """Partial seconds round up."""
        limiter.record_failure("x")
        clock.set(1)
        assert limiter.reset_seconds("x") == 1

        for _ in range(2):
            limiter.record_failure("x")
        assert limiter.reset_seconds("x") == 2

    def test_reset_seconds_never_negative(self, limiter, clock):
        """Elapsed entries report zero."""
        limiter.record_failure("x")
        clock.set(10_000)
        assert limiter.reset_seconds("x") == 0
        assert limiter.reset_seconds("nobody") == 0

    def test_reads_do_not_mutate(self, limiter, clock):
        """Advisory reads leave expired entries in place."""
        limiter.record_failure("x")
        clock.set(5000)

        limiter.remaining_attempts("x")
        limiter.reset_seconds("x")

        assert "x" in limiter._entries

    def test_status_when_blocked(self, limiter, clock):
        """Status carries a retry-after value only when denied."""
        assert limiter.status("x").retry_after == 0

        for _ in range(3):
            limiter.record_failure("x")
        clock.set(500)

        status = limiter.status("x")
        assert status.allowed is False
        assert status.remaining_attempts == 0
        assert status.retry_after == 2


class TestIdentifierNormalization:
    """Tests for the shared unknown bucket."""

    @pytest.mark.parametrize("identifier", ["", "   ", None])
    def test_empty_identifiers_map_to_unknown(self, identifier):
        assert normalize_identifier(identifier) == "unknown"

    def test_empty_identifier_rate_limited(self, limiter):
        """Clients without an identifier share one limited bucket."""
        for _ in range(3):
            limiter.record_failure("")

        assert limiter.is_allowed(None) is False
        assert limiter.is_allowed("unknown") is False


class TestPurgeExpired:
    """Tests for the maintenance sweep."""

    def test_removes_only_expired(self, limiter, clock):
        limiter.record_failure("old")
        clock.set(900)
        limiter.record_failure("new")

        clock.set(1500)
        assert limiter.purge_expired() == 1
        assert "old" not in limiter._entries
        assert "new" in limiter._entries

    def test_nothing_to_purge(self, limiter):
        assert limiter.purge_expired() == 0
