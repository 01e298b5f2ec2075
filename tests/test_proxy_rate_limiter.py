# Integrated Server Proxy
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Tests for the per-client fixed-window rate limiter."""

import time

import pytest

from integrated_proxy.proxy.rate_limiter import RateLimiter, RateWindow


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(max_requests=100, window_seconds=3600, clock=clock)


class TestFixedWindow:
    """Counting within one window."""

    def test_first_request_allowed(self, limiter):
        result = limiter.check("https://app.example.org")
        assert result.allowed is True
        assert result.count == 1
        assert result.limit == 100

    def test_first_request_opens_window(self, limiter, clock):
        limiter.check("client")
        window = limiter.get_window("client")
        assert window == RateWindow(count=1, reset_at=clock.now + 3600)

    def test_hundred_requests_allowed_then_rejected(self, limiter):
        for i in range(100):
            result = limiter.check("client")
            assert result.allowed is True, f"request {i + 1} should pass"
        result = limiter.check("client")
        assert result.allowed is False
        assert result.count == 101
        assert result.retry_after > 0

    def test_retry_after_counts_down(self, limiter, clock):
        for _ in range(100):
            limiter.check("client")
        clock.advance(600)
        result = limiter.check("client")
        assert result.allowed is False
        assert result.retry_after == 3000

    def test_retry_after_rounds_up(self, limiter, clock):
        for _ in range(100):
            limiter.check("client")
        clock.advance(3599.2)
        assert limiter.check("client").retry_after == 1

    def test_counter_keeps_climbing_past_limit(self, limiter):
        for _ in range(105):
            limiter.check("client")
        assert limiter.get_window("client").count == 105
        assert limiter.check("client").count == 106

    def test_window_does_not_slide(self, limiter, clock):
        limiter.check("client")
        clock.advance(3000)
        for _ in range(99):
            assert limiter.check("client").allowed is True
        # Reset time is anchored to the first request, not the latest one
        assert limiter.get_window("client").reset_at == 1000.0 + 3600
        assert limiter.check("client").allowed is False

    def test_clients_independent(self, limiter):
        for _ in range(101):
            limiter.check("a")
        assert limiter.check("a").allowed is False
        assert limiter.check("b").allowed is True


class TestWindowReset:
    def test_request_after_reset_starts_new_window(self, limiter, clock):
        for _ in range(101):
            limiter.check("client")
        clock.advance(3600)
        result = limiter.check("client")
        assert result.allowed is True
        assert result.count == 1
        assert limiter.get_window("client").reset_at == clock.now + 3600

    def test_reset_exactly_at_boundary(self, limiter, clock):
        limiter.check("client")
        clock.advance(3600)
        assert limiter.check("client").count == 1

    def test_just_before_boundary_still_counts(self, limiter, clock):
        limiter.check("client")
        clock.advance(3599.999)
        assert limiter.check("client").count == 2


class TestSweep:
    def test_sweep_removes_only_expired(self, limiter, clock):
        limiter.check("old")
        clock.advance(1800)
        limiter.check("new")
        clock.advance(1800)

        removed = limiter.sweep()

        assert removed == 1
        assert limiter.get_window("old") is None
        assert limiter.get_window("new") is not None
        assert limiter.tracked_clients == 1

    def test_sweep_empty_table(self, limiter):
        assert limiter.sweep() == 0

    def test_swept_client_starts_fresh(self, limiter, clock):
        for _ in range(101):
            limiter.check("client")
        clock.advance(3600)
        limiter.sweep()
        assert limiter.check("client").count == 1


class TestSweeperLifecycle:
    def test_start_and_stop(self):
        limiter = RateLimiter(max_requests=5, window_seconds=60)
        assert limiter.sweeper_running is False
        limiter.start_sweeper(interval=0.05)
        assert limiter.sweeper_running is True
        limiter.stop()
        assert limiter.sweeper_running is False

    def test_double_start_is_harmless(self):
        limiter = RateLimiter(max_requests=5, window_seconds=60)
        limiter.start_sweeper(interval=0.05)
        limiter.start_sweeper(interval=0.05)
        limiter.stop()
        assert limiter.sweeper_running is False

    def test_stop_without_start(self):
        RateLimiter().stop()

    def test_background_sweep_evicts_expired_windows(self, clock):
        limiter = RateLimiter(max_requests=5, window_seconds=10, clock=clock)
        limiter.check("client")
        clock.advance(10)
        limiter.start_sweeper(interval=0.02)
        try:
            deadline = time.time() + 2
            while limiter.tracked_clients and time.time() < deadline:
                time.sleep(0.01)
        finally:
            limiter.stop()
        assert limiter.tracked_clients == 0

    def test_stop_keeps_counters(self, limiter):
        limiter.start_sweeper(interval=10)
        limiter.check("client")
        limiter.stop()
        assert limiter.get_window("client").count == 1


class TestIntrospection:
    def test_get_stats(self, limiter):
        limiter.check("a")
        limiter.check("a")
        limiter.check("b")
        assert limiter.get_stats() == {"a": 2, "b": 1}

    def test_reset_all(self, limiter):
        limiter.check("a")
        limiter.check("b")
        limiter.reset()
        assert limiter.get_stats() == {}

    def test_reset_single_client(self, limiter):
        limiter.check("a")
        limiter.check("b")
        limiter.reset("a")
        assert limiter.get_stats() == {"b": 1}

    def test_client_ids_are_case_sensitive(self, limiter):
        limiter.check("https://App.example.org")
        limiter.check("https://app.example.org")
        assert len(limiter.get_stats()) == 2

    @pytest.mark.parametrize("kwargs", [{"max_requests": 0}, {"window_seconds": 0}])
    def test_invalid_settings_rejected(self, kwargs):
        with pytest.raises(ValueError):
            RateLimiter(**kwargs)
