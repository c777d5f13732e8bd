"""Rate limiting configuration using slowapi.

Module-level Limiter shared by routers (``@limiter.limit(...)``) and wired
into the FastAPI app in main.py.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# 60 requests/minute per client IP unless a route overrides it
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["60/minute"],
)
