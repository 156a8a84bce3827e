"""
In-process sliding-window rate limiter keyed by client address
"""
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from starlette.requests import Request


class SlidingWindowRateLimiter:
    """
    Counts hits per key inside a trailing window.

    State lives in this process only; separate workers keep separate counts.
    """

    def __init__(self, limit: int, window_seconds: int,
                 clock: Callable[[], float] = time.monotonic):
        self.limit = max(1, int(limit))
        self.window_seconds = max(1, int(window_seconds))
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, List[float]] = {}

    def hit(self, key: str) -> Tuple[bool, int]:
        """
        Record a request for ``key``.

        Returns (allowed, retry_after_seconds). Rejected requests are not
        counted.
        """
        now = self._clock()
        start = now - self.window_seconds
        with self._lock:
            bucket = [ts for ts in self._windows.get(key, []) if ts > start]
            if len(bucket) >= self.limit:
                self._windows[key] = bucket
                retry_after = int(max(1, self.window_seconds - (now - bucket[0])))
                return False, retry_after
            bucket.append(now)
            self._windows[key] = bucket
        return True, 0

    def remaining(self, key: str) -> int:
        start = self._clock() - self.window_seconds
        with self._lock:
            used = len([ts for ts in self._windows.get(key, []) if ts > start])
        return max(0, self.limit - used)

    def reset(self, key: Optional[str] = None):
        """Forget one key, or every key when none is given"""
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)


def resolve_client_ip(request: Request, trusted_proxy: bool = True) -> str:
    """Best guess at the caller's address, honouring proxy headers if trusted"""
    if trusted_proxy:
        xff = (request.headers.get("x-forwarded-for") or "").strip()
        if xff:
            first_hop = xff.split(",")[0].strip()
            if first_hop:
                return first_hop
        x_real_ip = (request.headers.get("x-real-ip") or "").strip()
        if x_real_ip:
            return x_real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
