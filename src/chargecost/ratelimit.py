"""Fixed-window request counter shared by the price provider adapters."""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Protocol

from .errors import RateLimitExceeded
from .models import RateLimitDefaults

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class RateLimiter:
    """Count outbound requests per fixed time window.

    A max_requests or period_seconds of zero or less disables the limiter:
    every call is permitted and the limit is never reached.
    """

    def __init__(
        self,
        max_requests: int = 0,
        period_seconds: int = 0,
        clock: Clock | None = None,
    ) -> None:
        self.clock = clock or SystemClock()
        self.max_requests = max_requests
        self.period_seconds = period_seconds
        self.count = 0
        self.window_start = self.clock.now()
        self._configured = (max_requests, period_seconds)
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0 and self.period_seconds > 0

    def configure_defaults(self, defaults: RateLimitDefaults | None) -> "RateLimiter":
        """Apply a provider's own limits where none were configured explicitly."""
        if defaults is None:
            return self
        configured_max, configured_period = self._configured
        with self._lock:
            self.max_requests = configured_max if configured_max > 0 else defaults.max_requests
            self.period_seconds = (
                configured_period if configured_period > 0 else defaults.period_seconds
            )
        logger.debug(
            "Using rate limit of %d requests per %d seconds",
            self.max_requests,
            self.period_seconds,
        )
        return self

    def _refresh_window(self) -> None:
        now = self.clock.now()
        if (now - self.window_start).total_seconds() > self.period_seconds:
            logger.debug("Rate limit period has elapsed. Resetting request count")
            self.window_start = now
            self.count = 0

    def record_call(self) -> None:
        """Count one request, raising RateLimitExceeded if it is over the limit."""
        if not self.enabled:
            return
        with self._lock:
            self._refresh_window()
            if self.count + 1 > self.max_requests:
                raise RateLimitExceeded(
                    f"Rate limit of {self.max_requests} requests per "
                    f"{self.period_seconds} seconds exceeded"
                )
            self.count += 1

    def is_limit_reached(self) -> bool:
        if not self.enabled:
            return False
        with self._lock:
            self._refresh_window()
            return self.count >= self.max_requests

    def next_reset_time(self) -> datetime:
        if not self.enabled:
            raise RuntimeError("Rate limiting is disabled")
        return self.window_start + timedelta(seconds=self.period_seconds)
