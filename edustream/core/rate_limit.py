"""
Shared rate limiting configuration.

`limiter` carries route-level limits applied with @limiter.limit(...).
Each service app gets its own default-limit instance from build_limiter(),
wired through SlowAPIMiddleware. Storage is in-memory, so limits are per
process.
"""
from typing import Callable, Iterable

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from edustream.core.config import settings

# Global limiter instance reused by routers for route-level limits
limiter = Limiter(
    key_func=get_remote_address,
    strategy="moving-window",
    enabled=settings.rate_limit_enabled,
)


def build_limiter(default_limit: str, exempt: Iterable[Callable] = ()) -> Limiter:
    """
    Create the default limiter for one service.

    Endpoints listed in `exempt` are skipped by the default limit; they are
    expected to carry their own route-level limit from `limiter`.
    """
    service_limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[default_limit],
        strategy="moving-window",
        enabled=settings.rate_limit_enabled,
    )
    for endpoint in exempt:
        service_limiter.exempt(endpoint)
    return service_limiter


# Re-export handler and exception for app wiring
rate_limit_handler = _rate_limit_exceeded_handler
rate_limit_exception = RateLimitExceeded
