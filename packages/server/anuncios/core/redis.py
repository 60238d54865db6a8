"""
Redis connection and key layout.

Redis only holds the session revocation list, so a slow or missing server
should fail a request quickly rather than hang it.
"""

from __future__ import annotations

import redis.asyncio as redis

from anuncios.core.config import get_settings

settings = get_settings()

REVOKED_SESSION_PREFIX = "session:revoked:"

_client: redis.Redis | None = None


def revoked_session_key(jti: str) -> str:
    return f"{REVOKED_SESSION_PREFIX}{jti}"


async def get_redis() -> redis.Redis:
    """Shared client, created on first use."""
    global _client
    if _client is None:
        _client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=settings.redis_timeout_seconds,
            socket_timeout=settings.redis_timeout_seconds,
        )
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
