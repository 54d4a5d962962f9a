"""Per-client request limits for the unauthenticated auth endpoints."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from portal.core import config

logger = logging.getLogger(__name__)

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=config.RATE_LIMIT_STORAGE_URI,
    enabled=config.RATE_LIMIT_ENABLED,
    strategy='fixed-window',
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning('Rate limit exceeded for %s on %s: %s', get_remote_address(request), request.url.path, exc.detail)
    return JSONResponse(
        status_code=429,
        content={'detail': 'Too many requests. Please wait a minute and try again.'},
    )
