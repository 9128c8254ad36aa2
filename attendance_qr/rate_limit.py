from __future__ import annotations

import time
from typing import Optional, Tuple

from fastapi import HTTPException, Request, status

from .config import get_settings


_window_counts: dict[Tuple[str, str, int], int] = {}


def _prune_windows(current_minute: int) -> None:
    for window in [w for w in _window_counts if w[2] < current_minute]:
        del _window_counts[window]


def rate_limit_check(request: Request, key: str, per_minute: Optional[int] = None) -> None:
    settings = get_settings()
    if not settings.rate_limit_enabled:
        return
    limit = per_minute if per_minute is not None else settings.rate_limit_per_minute
    ip = request.client.host if request.client else "unknown"
    minute = int(time.time() // 60)
    _prune_windows(minute)
    window = (key, ip, minute)
    count = _window_counts.get(window, 0) + 1
    _window_counts[window] = count
    if count > limit:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Rate limit exceeded")


def scan_rate_limit(request: Request) -> None:
    rate_limit_check(request, "qr.scan", get_settings().scan_rate_limit_per_minute)
