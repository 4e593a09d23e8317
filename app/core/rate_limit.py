"""
Rate limiting for SailMatch backend
Protects the LLM-backed endpoints (assessment, onboarding assistant)
"""
import time
from collections import defaultdict
from typing import Dict, List
from threading import Lock

from app.core.config import get_settings


class RateLimiter:
    """
    In-memory rate limiter with sliding window algorithm.
    Thread-safe for concurrent requests.
    """

    def __init__(self, max_requests: int = 30, window_seconds: int = 60):
        """
        Initialize rate limiter

        Args:
            max_requests: Maximum requests allowed in the window
            window_seconds: Time window in seconds
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._lock = Lock()

    def _prune(self, key: str, now: float) -> None:
        window_start = now - self.window_seconds
        if key in self._requests:
            self._requests[key] = [
                req_time for req_time in self._requests[key]
                if req_time > window_start
            ]

    def check_rate_limit(self, key: str) -> tuple[bool, int]:
        """
        Check if request is still within rate limit

        Args:
            key: Unique key for rate limiting (user id or client IP)

        Returns:
            Tuple (is_allowed, retry_after_seconds)
        """
        with self._lock:
            now = time.time()
            self._prune(key, now)

            if len(self._requests[key]) >= self.max_requests:
                # Time until oldest request leaves the window
                if self._requests[key]:
                    oldest_request = min(self._requests[key])
                    retry_after = int(self.window_seconds - (now - oldest_request)) + 1
                else:
                    retry_after = self.window_seconds

                return False, retry_after

            self._requests[key].append(now)
            return True, 0

    def get_remaining_requests(self, key: str) -> int:
        """Get remaining requests for a specific key"""
        with self._lock:
            self._prune(key, time.time())
            if key in self._requests:
                return max(0, self.max_requests - len(self._requests[key]))
            return self.max_requests

    def reset(self, key: str | None = None):
        """Reset rate limit for a specific key or all keys"""
        with self._lock:
            if key:
                self._requests.pop(key, None)
            else:
                self._requests.clear()


# AI endpoints (assessment, assistant chat)
ai_limiter = RateLimiter(max_requests=get_settings().ai_rate_limit, window_seconds=60)


def rate_limit_payload(limiter: RateLimiter, retry_after: int) -> dict:
    """Body returned with a 429 response"""
    return {
        "detail": "Too many AI requests. Please wait.",
        "retry_after": retry_after,
        "limit": limiter.max_requests,
        "window_seconds": limiter.window_seconds,
    }
