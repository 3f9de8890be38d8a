"""Rate limiting for public Looper endpoints.

Uses slowapi. Point RATE_LIMIT_STORAGE_URI at Redis to share counters
across gateway instances.
"""

from functools import lru_cache

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from libs.common.config import get_settings


def _get_client_ip(request: Request) -> str:
    """
    Get client IP from request, handling proxies.

    The first X-Forwarded-For hop is the original client.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


@lru_cache
def get_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=_get_client_ip,
        default_limits=["100/minute"],
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
        strategy="fixed-window",
    )


limiter = get_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Return a structured 429 with a Retry-After header."""
    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limited",
            "detail": f"Rate limit exceeded: {exc.detail}",
            "context": {},
        },
        headers={"Retry-After": str(getattr(exc, "retry_after", 60))},
    )
