"""Request context middleware: request ids, timing, access log and the login
attempt limiter, all in one pass.

The limiter is a pure function ``check_login_attempt`` over a caller-owned
bucket so it can be tested without the app.
"""

import logging
import threading
import time
import uuid
from collections import deque
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..core.auth import client_ip
from ..core.config import settings
from ..core.logging_config import request_id_var, request_path_var, user_id_var
from ..exceptions import RateLimitedError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Login limiter: sliding window of attempt timestamps per client
# ---------------------------------------------------------------------------

_rate_buckets: dict[str, deque] = {}
_rate_lock = threading.Lock()

_rate_call_count = 0
_EVICT_EVERY = 100

_LIMITED_ROUTES = frozenset({("POST", "/api/auth/login")})


def check_login_attempt(
    bucket: dict[str, deque],
    key: str,
    limit: int,
    window_seconds: float,
    now: Optional[float] = None,
) -> tuple[bool, float]:
    """Record an attempt from *key* and decide whether it is allowed.

    At most *limit* attempts are accepted in any *window_seconds* span.
    Rejected attempts are not recorded, so a client that keeps hammering
    is let back in once its oldest accepted attempt leaves the window.

    Returns:
        ``(allowed, retry_after)``; *retry_after* is 0.0 when allowed.
    """
    global _rate_call_count

    if limit <= 0:
        return True, 0.0
    if now is None:
        now = time.monotonic()

    cutoff = now - window_seconds

    _rate_call_count += 1
    if _rate_call_count % _EVICT_EVERY == 0:
        stale = [k for k, attempts in bucket.items() if not attempts or attempts[-1] <= cutoff]
        for k in stale:
            del bucket[k]

    attempts = bucket.setdefault(key, deque())
    while attempts and attempts[0] <= cutoff:
        attempts.popleft()

    if len(attempts) >= limit:
        return False, attempts[0] + window_seconds - now

    attempts.append(now)
    return True, 0.0


def _client_key(request: Request) -> str:
    return client_ip(request) or "unknown"


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Single middleware handling request-id, timing, logging and login throttling."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request_id_var.set(rid)
        request_path_var.set(request.url.path)
        user_id_var.set("")

        if (request.method, request.url.path.rstrip("/")) in _LIMITED_ROUTES:
            key = _client_key(request)
            with _rate_lock:
                allowed, retry_after = check_login_attempt(
                    _rate_buckets,
                    key,
                    settings.login_rate_limit,
                    settings.login_rate_window_seconds,
                )
            if not allowed:
                error = RateLimitedError(retry_after=int(retry_after) + 1)
                logger.warning(
                    "Login rate limit exceeded",
                    extra={"client": key, "retry_after": round(retry_after, 1)},
                )
                return JSONResponse(
                    status_code=error.status_code,
                    content=error.to_dict(),
                    headers={"Retry-After": str(int(retry_after) + 1), "X-Request-ID": rid},
                )

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        response.headers["X-Request-ID"] = rid
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        access = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        user_id = getattr(request.state, "user_id", None)
        if user_id is not None:
            access["user_id"] = user_id
        logger.info(f"{request.method} {request.url.path} {response.status_code}", extra=access)

        return response
