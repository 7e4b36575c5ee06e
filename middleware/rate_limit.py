# middleware/rate_limit.py
"""
Inbound rate limiting for write endpoints (slowapi).

Usage in route files:
    from middleware.rate_limit import limiter, SUBMIT_RATE_LIMIT

    @router.post("/submit")
    @limiter.limit(SUBMIT_RATE_LIMIT)
    async def submit(request: Request, ...):
        ...
"""
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

SUBMIT_RATE_LIMIT = os.getenv("RATE_LIMIT_SUBMIT", "10/minute")

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
    strategy="fixed-window",
)
