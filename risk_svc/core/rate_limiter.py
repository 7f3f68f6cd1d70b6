"""
Inbound rate limiting for /api/ routes.

Per-client-IP sliding window kept in memory. Applied as a router-level
dependency so a limited request is rejected before any validation or
endpoint call happens.
"""
import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from fastapi import Depends, Request

from core.config import settings
from core.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    In-memory rate limiter using sliding window algorithm.

    Tracks request timestamps per client key and enforces a maximum
    number of requests within the window.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 900,
        cleanup_interval: float = 300
    ):
        """
        Initialize the rate limiter.

        Args:
            max_requests: Maximum number of requests allowed within the window.
            window_seconds: Size of the sliding window in seconds.
            cleanup_interval: Seconds between cleanup of idle clients.
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.cleanup_interval = cleanup_interval

        # client key -> request timestamps
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._last_cleanup = time.monotonic()

    def _cleanup_old_entries(self, now: float) -> None:
        """Remove expired entries to prevent memory growth."""
        if now - self._last_cleanup < self.cleanup_interval:
            return

        cutoff = now - self.window_seconds
        idle = []
        for key, timestamps in self._requests.items():
            self._requests[key] = [ts for ts in timestamps if ts > cutoff]
            if not self._requests[key]:
                idle.append(key)

        for key in idle:
            del self._requests[key]

        self._last_cleanup = now
        logger.debug(f"Rate limiter cleanup: removed {len(idle)} idle clients")

    def is_allowed(self, key: str) -> Tuple[bool, Optional[float]]:
        """
        Check (and record) a request from the client.

        Returns:
            Tuple of (is_allowed, retry_after_seconds). retry_after is None when allowed.
        """
        now = time.monotonic()
        self._cleanup_old_entries(now)

        cutoff = now - self.window_seconds
        recent = [ts for ts in self._requests[key] if ts > cutoff]

        if len(recent) >= self.max_requests:
            retry_after = (recent[0] + self.window_seconds) - now
            self._requests[key] = recent
            return False, max(0.1, retry_after)

        recent.append(now)
        self._requests[key] = recent
        return True, None

    def get_remaining(self, key: str) -> int:
        """Number of requests the client may still make in the current window."""
        cutoff = time.monotonic() - self.window_seconds
        recent_count = sum(1 for ts in self._requests.get(key, []) if ts > cutoff)
        return max(0, self.max_requests - recent_count)


_limiter_instance: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get the process-wide rate limiter configured from settings."""
    global _limiter_instance
    if _limiter_instance is None:
        _limiter_instance = RateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
    return _limiter_instance


async def enforce_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    """
    Router dependency rejecting clients over the configured rate.

    Raises:
        RateLimitExceededError: 429 with a retry_after hint.
    """
    client_ip = request.client.host if request.client else "unknown"
    allowed, retry_after = limiter.is_allowed(client_ip)
    if not allowed:
        logger.warning(
            "Rate limited client",
            extra={"client_ip": client_ip, "path": request.url.path, "retry_after": retry_after}
        )
        raise RateLimitExceededError(retry_after=retry_after)
