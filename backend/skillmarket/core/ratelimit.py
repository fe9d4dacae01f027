from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List

from fastapi import HTTPException

DEFAULT_MIN_INTERVAL_SECONDS = 10.0


class RateLimiter:
    """Sliding-window request cap per key, used at the HTTP edge.

    ``check`` records the hit or raises a 429 carrying ``retry_after_seconds``.
    """

    def __init__(self, limit: int, window_seconds: int):
        self.limit = limit
        self.window = timedelta(seconds=window_seconds)
        self.hits: Dict[str, List[datetime]] = {}

    def check(self, key: str) -> None:
        now = datetime.now(timezone.utc)
        window_start = now - self.window
        entries = self.hits.get(key, [])
        entries = [ts for ts in entries if ts >= window_start]

        if len(entries) >= self.limit:
            oldest_in_window = min(entries) if entries else now
            retry_after = int(max(1, (oldest_in_window + self.window - now).total_seconds()))
            raise HTTPException(
                status_code=429,
                detail={
                    "message": "Rate limit exceeded",
                    "retry_after_seconds": retry_after,
                },
            )

        entries.append(now)
        self.hits[key] = entries

    def clear(self, key: str) -> None:
        if key in self.hits:
            del self.hits[key]

    def clear_prefix(self, prefix: str) -> None:
        for key in list(self.hits.keys()):
            if key.startswith(prefix):
                del self.hits[key]


class CallIntervalLimiter:
    """Minimum spacing between calls to one external service.

    Check ``is_limited`` before issuing the call and ``mark_called`` once it
    has been issued, not after it resolves.
    """

    def __init__(
        self,
        min_interval_seconds: float = DEFAULT_MIN_INTERVAL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_interval = float(min_interval_seconds)
        self._clock = clock
        self._last_calls: Dict[str, float] = {}

    def is_limited(self, service: str) -> bool:
        return self.retry_after(service) > 0

    def retry_after(self, service: str) -> float:
        last_call = self._last_calls.get(service)
        if last_call is None:
            return 0.0
        return max(0.0, self.min_interval - (self._clock() - last_call))

    def mark_called(self, service: str) -> None:
        self._last_calls[service] = self._clock()

    def reset(self, service: str) -> None:
        self._last_calls.pop(service, None)

    def clear(self) -> None:
        self._last_calls.clear()

    def snapshot(self) -> Dict[str, float]:
        return dict(self._last_calls)


from skillmarket.core.config import settings


api_rate_limiter = RateLimiter(
    limit=settings.api_rate_limit,
    window_seconds=settings.api_rate_window_seconds,
)
