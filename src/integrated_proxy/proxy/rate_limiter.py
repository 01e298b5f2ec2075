# Integrated Server Proxy
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of Integrated Server Proxy.
#
# Integrated Server Proxy is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
#    You may use, modify, and distribute this file under AGPL-3.0.
#    See LICENSE for the full text.
#
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#    For proprietary use, SaaS deployment, or enterprise licensing.
#    See LICENSE-ENTERPRISE.md or contact info@phoenixlink.co.za
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""Per-client fixed-window rate limiter.

Each client identity gets a window of ``window_seconds`` that opens on
its first request. Requests inside the window are counted; once the
count passes ``max_requests`` the client is rejected until the window
ends. The count keeps climbing on rejected requests and only resets
when a request arrives after the window boundary -- there is no smooth
refill.

The table lives in memory only. A sweeper thread periodically drops
windows that have already ended, so memory is bounded by the number of
distinct clients active within one window.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger("integrated_proxy.proxy.rate_limiter")

DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_SECONDS = 3600.0


@dataclass
class RateWindow:
    """Accounting record for one client identity."""

    count: int
    reset_at: float  # clock value at which the window ends


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""

    allowed: bool
    count: int = 0  # Requests seen in the current window, including this one
    limit: int = 0
    retry_after: int = 0  # Seconds until the window resets (only when rejected)


class RateLimiter:
    """Fixed-window request counter keyed by client identity.

    Usage:
        limiter = RateLimiter(max_requests=100, window_seconds=3600)
        limiter.start_sweeper()
        result = limiter.check("https://app.example.org")
        ...
        limiter.stop()
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._max_requests = max_requests
        self._window = float(window_seconds)
        self._clock = clock
        self._windows: dict[str, RateWindow] = {}
        self._lock = threading.Lock()

        self._sweeper: threading.Thread | None = None
        self._stop_event = threading.Event()

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_seconds(self) -> float:
        return self._window

    @property
    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._windows)

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def check(self, client_id: str) -> RateLimitResult:
        """Count a request for ``client_id`` and decide whether it may proceed.

        Called once per inbound request, before anything is forwarded.
        """
        now = self._clock()
        with self._lock:
            window = self._windows.get(client_id)
            if window is None or now >= window.reset_at:
                window = RateWindow(count=1, reset_at=now + self._window)
                self._windows[client_id] = window
            else:
                window.count += 1
            count = window.count
            reset_at = window.reset_at

        if count <= self._max_requests:
            return RateLimitResult(allowed=True, count=count, limit=self._max_requests)

        retry_after = max(1, math.ceil(reset_at - now))
        logger.warning(
            "Rate limit exceeded for %s: %d/%d (retry in %ds)",
            client_id,
            count,
            self._max_requests,
            retry_after,
        )
        return RateLimitResult(
            allowed=False,
            count=count,
            limit=self._max_requests,
            retry_after=retry_after,
        )

    def sweep(self) -> int:
        """Drop every window that has already ended. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, w in self._windows.items() if now >= w.reset_at]
            for key in expired:
                del self._windows[key]
        if expired:
            logger.debug("Swept %d expired rate windows", len(expired))
        return len(expired)

    # ---------------------------------------------------------------
    # Sweeper lifecycle
    # ---------------------------------------------------------------
    def start_sweeper(self, interval: float | None = None) -> None:
        """Start the background sweep thread (default interval: one window)."""
        if self.sweeper_running:
            logger.warning("Rate limit sweeper already running")
            return
        period = interval if interval is not None else self._window
        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            args=(period,),
            name="rate-limit-sweeper",
            daemon=True,
        )
        self._sweeper.start()
        logger.info("Rate limit sweeper started (every %.0fs)", period)

    def stop(self) -> None:
        """Stop the sweep thread. Counters are kept."""
        self._stop_event.set()
        if self._sweeper:
            self._sweeper.join(timeout=5)
            self._sweeper = None
            logger.info("Rate limit sweeper stopped")

    def _sweep_loop(self, period: float) -> None:
        while not self._stop_event.wait(period):
            try:
                self.sweep()
            except Exception as exc:
                logger.error("Rate limit sweep failed: %s", exc)

    # ---------------------------------------------------------------
    # Introspection
    # ---------------------------------------------------------------
    def get_window(self, client_id: str) -> RateWindow | None:
        """Copy of the current window for ``client_id``, if any."""
        with self._lock:
            window = self._windows.get(client_id)
            return RateWindow(window.count, window.reset_at) if window else None

    def get_stats(self) -> dict[str, int]:
        """Current request count per tracked client."""
        with self._lock:
            return {key: w.count for key, w in self._windows.items()}

    def reset(self, client_id: str | None = None) -> None:
        """Reset counters. If client_id is None, reset all."""
        with self._lock:
            if client_id is None:
                self._windows.clear()
            else:
                self._windows.pop(client_id, None)
