"""Redis connection for rate-limit counters.

Redis is optional. With an empty ``HT_REDIS_URL`` no client is created: rate
limiting is skipped and dependency checks report it as not configured.
"""

import redis.asyncio as redis
import structlog

logger = structlog.get_logger()

_client: redis.Redis | None = None


async def init_redis(url: str | None) -> None:
    """Create the client, or leave Redis disabled when no URL is set."""
    global _client  # noqa: PLW0603
    if not url:
        logger.info("redis_disabled")
        return
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        decode_responses=True,
        max_connections=20,
        socket_connect_timeout=2,
        socket_timeout=2,
    )


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis | None:
    """The shared client, or None when Redis is not configured."""
    return _client
