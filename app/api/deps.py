"""API dependencies — storage, feed client, and API key authentication.

Authentication: header X-API-Key, checked when API_KEY is set in the
environment. With no key configured the endpoints are open (a warning is
logged at startup).
"""
import secrets
from typing import Annotated, Generator

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from app.config import settings
from app.database import async_session_factory
from app.services.feed_service import FeedClient
from app.services.storage_service import PropertyStorage


# ---------------------------------------------------------------------------
# Import collaborators
# ---------------------------------------------------------------------------

def get_property_storage() -> PropertyStorage:
    """Storage bound to the application session factory."""
    return PropertyStorage(async_session_factory, chunk_size=settings.upsert_chunk_size)


def get_feed_client() -> Generator[FeedClient, None, None]:
    """Yield a vendor feed client for request scope."""
    client = FeedClient(
        url=settings.feed_url,
        timeout=settings.feed_timeout,
        user_agent=settings.feed_user_agent,
    )
    try:
        yield client
    finally:
        client.close()


# ---------------------------------------------------------------------------
# API Key authentication
# ---------------------------------------------------------------------------

_api_key_header = APIKeyHeader(
    name="X-API-Key",
    auto_error=False,  # 401 from verify_api_key instead of the default 403
    description="API key. Configured via API_KEY in .env",
)


async def verify_api_key(
    api_key: Annotated[str | None, Security(_api_key_header)],
) -> str | None:
    """Validate the X-API-Key header with a constant-time comparison.

    Raises:
        HTTPException 401: key configured on the server and missing or wrong.
    """
    if not settings.api_key:
        return None

    if not api_key or not secrets.compare_digest(api_key, settings.api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key. Use the X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return api_key


RequireApiKey = Depends(verify_api_key)
