from datetime import date

from loguru import logger
from redis.asyncio import Redis

from carwash.settings import REDIS_URL

_redis: Redis | None = None
BOOKED_SLOTS_TTL = 60  # seconds

# Booked slots for a day are stored as one comma-joined string so that a day
# with nothing booked still caches as "" rather than a missing key.
_SEPARATOR = ","


def get_redis() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis.from_url(REDIS_URL, decode_responses=True)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def booked_slots_key(day: date) -> str:
    return f"carwash:booked:{day.isoformat()}"


async def get_booked_slots(day: date) -> list[str] | None:
    """Held slots for `day`, or None on a miss or when redis is unreachable."""
    try:
        raw = await get_redis().get(booked_slots_key(day))
    except Exception:
        logger.opt(exception=True).warning("Redis get failed for booked slots {}", day)
        return None
    if raw is None:
        return None
    return raw.split(_SEPARATOR) if raw else []


async def cache_booked_slots(day: date, booked: list[str]) -> None:
    try:
        await get_redis().set(
            booked_slots_key(day), _SEPARATOR.join(booked), ex=BOOKED_SLOTS_TTL
        )
    except Exception:
        logger.opt(exception=True).warning("Redis set failed for booked slots {}", day)


async def invalidate_slots_cache(day: date) -> None:
    try:
        await get_redis().delete(booked_slots_key(day))
    except Exception:
        logger.opt(exception=True).warning("Redis delete failed for booked slots {}", day)
