"""Authentication and rate limiting helpers for the API."""

import os
import secrets
import logging

from fastapi import HTTPException, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_api_key

logger = logging.getLogger(__name__)

security = HTTPBearer()

# Per-client limit applied to every engine endpoint
RATE_LIMIT = os.getenv("RATE_LIMIT", "120/minute")

limiter = Limiter(key_func=get_remote_address)


async def verify_api_key(credentials: HTTPAuthorizationCredentials = Security(security)) -> str:
    """Check the bearer token against the API_KEY setting.

    Raises:
        HTTPException: 500 when no key is configured, 401 when it does not match.
    """
    expected_key = get_api_key()
    if not expected_key:
        logger.error("API_KEY environment variable is not configured")
        raise HTTPException(status_code=500, detail="Server configuration error")
    if not secrets.compare_digest(credentials.credentials, expected_key):
        logger.warning("Rejected request with an invalid API key")
        raise HTTPException(status_code=401, detail="Invalid API key")
    return credentials.credentials
