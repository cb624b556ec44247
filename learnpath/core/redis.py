"""Redis client for the certificate verification cache.

Issued certificates never change, so public verification payloads are
cached for ``certificate_verify_cache_seconds``. Redis is optional: when
it cannot be reached the certification service gets ``None`` and reads
Cassandra directly.
"""

import redis.asyncio as redis

from learnpath.config import Settings, get_settings
from learnpath.core.logging import get_logger


logger = get_logger(__name__)

VERIFY_KEY_PREFIX = "certificates:verify"


def certificate_verification_key(certificate_id: str) -> str:
    """Cache key for a public certificate verification payload."""
    return f"{VERIFY_KEY_PREFIX}:{certificate_id.upper()}"


async def connect_redis(settings: Settings | None = None) -> redis.Redis | None:
    """Open the cache client, or return ``None`` if Redis is unreachable."""
    settings = settings or get_settings()

    client = redis.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        retry_on_timeout=settings.redis_retry_on_timeout,
        health_check_interval=settings.redis_health_check_interval,
        decode_responses=True,
    )

    try:
        await client.ping()
    except (redis.ConnectionError, redis.TimeoutError) as e:
        logger.warning(
            "redis_unavailable",
            url=settings.redis_url,
            error=str(e),
            message="Certificate verification will not be cached",
        )
        await client.aclose()
        return None

    logger.info("redis_connected", url=settings.redis_url)
    return client


async def close_redis(client: redis.Redis | None) -> None:
    """Close the cache client if one was opened."""
    if client is None:
        return
    await client.aclose()
    logger.info("redis_disconnected")
