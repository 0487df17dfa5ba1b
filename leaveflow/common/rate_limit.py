"""Rate limiting configuration using slowapi.

A module-level Limiter shared by the leave routers and wired into the
FastAPI app in main.py.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# 60 requests/minute per client IP by default; apply endpoints tighten this
# with @limiter.limit(APPLY_RATE_LIMIT).
APPLY_RATE_LIMIT = "10/minute"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["60/minute"],
)
