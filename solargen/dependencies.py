import secrets

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from solargen.config import settings

# Declares the X-API-Key header in OpenAPI schema
api_key_scheme = APIKeyHeader(name="X-API-Key", auto_error=False)


async def require_api_key(api_key: str | None = Security(api_key_scheme)) -> str:
    """Reject requests to the status and backfill endpoints without a valid key."""
    if not api_key or not secrets.compare_digest(api_key, settings.api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return api_key
