"""
Redis client for access-token revocation.

Logout writes the token's jti under "revoked:{jti}" with a TTL equal to the
token's remaining lifetime, so the keyspace never outgrows the set of
still-valid tokens. Redis is advisory: when it is disabled or unreachable
revocation is skipped and the token simply expires.
"""

from typing import Optional

import redis.asyncio as redis

from tablebook.core.config import Settings
from tablebook.core.logging import get_logger
from tablebook.core.metrics import token_store_errors

logger = get_logger(__name__)

REVOKED_PREFIX = "revoked:"


async def connect_redis(settings: Settings) -> Optional[redis.Redis]:
    """Create and ping a client. Returns None if Redis is disabled or down."""
    if not settings.REDIS_ENABLED:
        return None

    client = redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        retry_on_timeout=True,
        health_check_interval=30,
    )
    try:
        await client.ping()
    except redis.RedisError as e:
        logger.error("redis_connection_failed", url=settings.REDIS_URL, error=str(e))
        token_store_errors.inc()
        await client.aclose()
        return None

    logger.info("redis_connected", url=settings.REDIS_URL)
    return client


async def close_redis(client: Optional[redis.Redis]) -> None:
    if client is not None:
        await client.aclose()


async def revoke_token(client: Optional[redis.Redis], jti: str, ttl_seconds: int) -> bool:
    """Mark a token id as revoked. Returns False when revocation could not be stored."""
    if client is None:
        logger.warning("token_revocation_skipped", reason="redis_unavailable")
        return False
    if ttl_seconds <= 0:
        return True

    try:
        await client.setex(f"{REVOKED_PREFIX}{jti}", ttl_seconds, "1")
    except redis.RedisError as e:
        token_store_errors.inc()
        logger.error("token_revocation_failed", error=str(e))
        return False
    return True


async def is_token_revoked(client: Optional[redis.Redis], jti: str) -> bool:
    if client is None:
        return False

    try:
        return bool(await client.exists(f"{REVOKED_PREFIX}{jti}"))
    except redis.RedisError as e:
        token_store_errors.inc()
        logger.error("token_revocation_lookup_failed", error=str(e))
        return False


async def get_token_store_status(client: Optional[redis.Redis]) -> dict:
    """Redis status for the health endpoint."""
    if client is None:
        return {"status": "disabled"}

    try:
        await client.ping()
        return {"status": "connected"}
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}
