"""
Rate Limiter — Fixed-window, in-memory request throttle.
Per-process only; a multi-worker deployment needs a shared store.
"""
import time
from typing import Dict, Tuple

import structlog
from fastapi import Request

from casepay.exceptions import RateLimited

logger = structlog.get_logger(__name__)

# {(client, scope): (window_start, count)}
_rate_limit_store: Dict[Tuple[str, str], Tuple[float, int]] = {}


def reset():
    """Forget every client's window."""
    _rate_limit_store.clear()


def rate_limit(requests: int, window: int, scope: str = None):
    """
    Dependency for rate limiting, counted per client IP and scope
    (the request path when no scope is given).
    Example: Depends(rate_limit(requests=5, window=60, scope="create-order"))
    """
    def limiter(request: Request):
        client = request.client.host if request.client else "unknown"
        key = (client, scope or request.url.path)
        now = time.time()

        window_start, count = _rate_limit_store.get(key, (now, 0))
        if now - window_start > window:
            window_start, count = now, 0

        if count >= requests:
            retry_after = max(1, int(window - (now - window_start)))
            logger.warning("rate_limited", client=client, scope=key[1], retry_after=retry_after)
            raise RateLimited(f"Too many requests. Try again in {retry_after} seconds.", retry_after=retry_after)

        _rate_limit_store[key] = (window_start, count + 1)
        return True

    return limiter
