"""Simple in-memory per-IP rate limiter."""
import time
from collections import defaultdict
from typing import Iterable, Optional

from starlette.requests import Request


class RateLimiter:
    """
    Sliding-window rate limiter keyed by client IP.

    Args:
        max_requests: Maximum requests allowed in the window.
        window_seconds: Time window in seconds.
        trusted_proxies: Peer addresses whose X-Forwarded-For header is
            believed. From any other peer the header is ignored.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        trusted_proxies: Optional[Iterable[str]] = None,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.trusted_proxies = set(trusted_proxies or ())
        # {ip: [timestamp, ...]}
        self._requests: dict[str, list[float]] = defaultdict(list)

    def client_ip(self, request: Request) -> str:
        """Extract client IP, using X-Forwarded-For only behind a trusted proxy."""
        peer = request.client.host if request.client else "unknown"
        if peer not in self.trusted_proxies:
            return peer

        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # First IP in the chain is the client as seen by the proxy
            return forwarded.split(",")[0].strip()
        return peer

    def _prune(self, cutoff: float):
        for ip in list(self._requests):
            recent = [t for t in self._requests[ip] if t > cutoff]
            if recent:
                self._requests[ip] = recent
            else:
                del self._requests[ip]

    def allow(self, request: Request) -> bool:
        """Record the request and return False if the client is over its limit."""
        ip = self.client_ip(request)
        now = time.monotonic()
        self._prune(now - self.window_seconds)

        if len(self._requests[ip]) >= self.max_requests:
            return False

        self._requests[ip].append(now)
        return True

    @property
    def tracked_clients(self) -> int:
        return len(self._requests)
