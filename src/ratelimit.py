"""Client-side pacing of OVH API calls."""

import logging
import os
import threading
import time
from collections.abc import Mapping
from contextlib import contextmanager
from typing import Generator

from metrics import RATE_LIMIT_WAIT_SECONDS
from models import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_CALLS = 10
DEFAULT_REQUESTS_PER_SECOND = 2.0
DEFAULT_THROTTLE_COOLDOWN = 5.0


class RateLimiter:
    """Caps in-flight OVH calls and spaces their start times.

    When OVH answers a call with HTTP 429 the caller reports it through
    throttled(); every call started during the following cooldown waits
    until it has elapsed. The limiter never retries anything itself.
    """

    def __init__(
        self,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT_CALLS,
        requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND,
        throttle_cooldown: float = DEFAULT_THROTTLE_COOLDOWN,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._slots = threading.BoundedSemaphore(max_concurrent)
        self._spacing = 1.0 / requests_per_second if requests_per_second > 0 else 0.0
        self._cooldown = max(throttle_cooldown, 0.0)
        self._next_start = 0.0
        self._lock = threading.Lock()
        self.max_concurrent = max_concurrent
        self.requests_per_second = requests_per_second

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RateLimiter":
        """Build a limiter from OVH_MAX_CONCURRENT_CALLS, OVH_REQUESTS_PER_SECOND
        and OVH_THROTTLE_COOLDOWN.

        Raises:
            ConfigurationError: If a value is not a number.
        """
        env = os.environ if environ is None else environ
        try:
            limiter = cls(
                max_concurrent=int(
                    env.get("OVH_MAX_CONCURRENT_CALLS", DEFAULT_MAX_CONCURRENT_CALLS)
                ),
                requests_per_second=float(
                    env.get("OVH_REQUESTS_PER_SECOND", DEFAULT_REQUESTS_PER_SECOND)
                ),
                throttle_cooldown=float(
                    env.get("OVH_THROTTLE_COOLDOWN", DEFAULT_THROTTLE_COOLDOWN)
                ),
            )
        except ValueError as e:
            raise ConfigurationError(f"invalid rate limit setting: {e}") from e
        logger.info("OVH call pacing: %r", limiter)
        return limiter

    def _reserve(self) -> float:
        """Claim the next start slot and return how long to wait for it."""
        with self._lock:
            now = time.monotonic()
            start = max(now, self._next_start)
            self._next_start = start + self._spacing
            return start - now

    def throttled(self) -> None:
        """Hold back every new call for the cooldown period."""
        if not self._cooldown:
            return
        with self._lock:
            resume = time.monotonic() + self._cooldown
            if resume > self._next_start:
                self._next_start = resume
        logger.warning("OVH API throttled the operator, pausing calls for %.1fs", self._cooldown)

    @contextmanager
    def acquire(self) -> Generator[None, None, None]:
        """Hold one call slot for the duration of the block."""
        queued_at = time.monotonic()
        self._slots.acquire()
        try:
            delay = self._reserve()
            if delay > 0:
                time.sleep(delay)
            waited = time.monotonic() - queued_at
            if waited > 0.001:
                RATE_LIMIT_WAIT_SECONDS.observe(waited)
            yield
        finally:
            self._slots.release()

    def __repr__(self) -> str:
        return (
            f"RateLimiter(max_concurrent={self.max_concurrent}, "
            f"requests_per_second={self.requests_per_second}, "
            f"throttle_cooldown={self._cooldown})"
        )


_rate_limiter: RateLimiter | None = None
_rate_limiter_lock = threading.Lock()


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide limiter, configured from the environment on first use."""
    global _rate_limiter

    if _rate_limiter is None:
        with _rate_limiter_lock:
            if _rate_limiter is None:
                _rate_limiter = RateLimiter.from_env()

    return _rate_limiter
