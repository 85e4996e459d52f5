"""Bounded in-memory store of per-client request timestamps."""

import time
from collections import OrderedDict


class RateLimitStore:
    """Sliding-window request counter keyed by client IP.

    At most ``max_clients`` clients are tracked; the least recently seen
    client is evicted first.
    """

    def __init__(self, requests_per_minute: int, max_clients: int = 10000, window_seconds: float = 60.0) -> None:
        self.requests_per_minute = requests_per_minute
        self.max_clients = max_clients
        self.window_seconds = window_seconds
        self._requests: OrderedDict[str, list[float]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._requests)

    def __contains__(self, client_ip: object) -> bool:
        return client_ip in self._requests

    def hit(self, client_ip: str, now: float | None = None) -> bool:
        """Record a request from ``client_ip``.

        Returns:
            True if the request is within the limit, False if it should be rejected.
        """
        now = time.monotonic() if now is None else now
        window_start = now - self.window_seconds

        timestamps = [t for t in self._requests.pop(client_ip, []) if t > window_start]
        allowed = len(timestamps) < self.requests_per_minute
        if allowed:
            timestamps.append(now)
        self._requests[client_ip] = timestamps

        while len(self._requests) > self.max_clients:
            self._requests.popitem(last=False)
        return allowed
