# config/cache.py
from typing import Optional
from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError
from config.settings import settings
from util.timing import timed
import logging

logger = logging.getLogger(__name__)

_client: Optional[Redis] = None


async def get_redis() -> Redis:
    """
    Shared handle for the rate limiter and the per-document ingestion locks.
    The first call pings, so startup fails when Redis is unreachable.
    """
    global _client
    if _client is None:
        client = from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=False,
            socket_keepalive=True,
            socket_timeout=settings.HTTP_TIMEOUT_SECONDS,
            health_check_interval=30,
        )
        try:
            with timed(logger, "redis.connect"):
                await client.ping()
        except RedisError:
            await client.aclose()
            raise
        _client = client
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
