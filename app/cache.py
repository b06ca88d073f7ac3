from uuid import UUID

from loguru import logger
from redis.asyncio import Redis

from app.schemas import BookingStats
from app.settings import REDIS_URL

_redis: Redis | None = None
STATS_TTL = 60  # 1 minute


def get_redis() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis.from_url(REDIS_URL, decode_responses=True)
    return _redis


def _stats_key(customer_id: UUID | None) -> str:
    return f"booking-stats:{customer_id or 'all'}"


async def get_stats_cache(customer_id: UUID | None) -> BookingStats | None:
    try:
        data = await get_redis().get(_stats_key(customer_id))
        return BookingStats.model_validate_json(data) if data else None
    except Exception:
        logger.warning("Redis get failed, skipping stats cache", exc_info=True)
        return None


async def set_stats_cache(customer_id: UUID | None, stats: BookingStats) -> None:
    try:
        await get_redis().setex(
            _stats_key(customer_id), STATS_TTL, stats.model_dump_json()
        )
    except Exception:
        logger.warning("Redis set failed, skipping stats cache", exc_info=True)


async def invalidate_stats_cache(customer_id: UUID | None = None) -> None:
    """Drop the customer's stats and the global stats."""
    keys = {_stats_key(None)}
    if customer_id is not None:
        keys.add(_stats_key(customer_id))
    try:
        await get_redis().delete(*keys)
    except Exception:
        logger.warning("Redis invalidate failed for stats cache", exc_info=True)
