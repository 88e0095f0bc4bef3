"""
Scheduled sync deduplication — Redis lock per UTC hour.

Celery beat can fire the same schedule twice (restarts, clock drift, two beat
processes). The lock ensures only ONE enqueue pass per sync hour.
Version: 1.0.0
"""
import logging
from datetime import datetime, timezone
from typing import Optional

import redis

from app.core.config import settings

logger = logging.getLogger(__name__)

SCHEDULE_LOCK_TTL = 3600


def _get_redis() -> redis.Redis:
    """Create a Redis client from the configured URL."""
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)


def _today() -> str:
    """Current UTC date as YYYY-MM-DD."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def schedule_lock_key(hour: int, day: Optional[str] = None) -> str:
    return f"scheduled_sync_lock:{day or _today()}:{hour}"


def acquire_schedule_lock(hour: int, task_id: str = "unknown", client: Optional[redis.Redis] = None) -> bool:
    """Acquire the per-hour schedule lock (SET NX EX).

    Returns True if lock was acquired (this run should enqueue).
    Returns False if lock is already held (this hour was already handled).
    """
    r = client or _get_redis()
    key = schedule_lock_key(hour)

    acquired = r.set(key, task_id, nx=True, ex=SCHEDULE_LOCK_TTL)

    if acquired:
        logger.info(f"Schedule lock ACQUIRED: hour={hour}, task={task_id}")
    else:
        holder = r.get(key)
        logger.info(f"Schedule lock HELD: hour={hour}, holder={holder}, skipping")

    return bool(acquired)


def release_schedule_lock(hour: int, client: Optional[redis.Redis] = None) -> None:
    """Release the schedule lock, e.g. when the enqueue pass failed."""
    r = client or _get_redis()
    r.delete(schedule_lock_key(hour))
    logger.debug(f"Schedule lock released: hour={hour}")
