import logging
from datetime import datetime, timedelta
from fastapi import HTTPException

logger = logging.getLogger(__name__)


async def rate_limit(db, key: str, max_requests: int, window_seconds: int) -> int:
    """
    Fixed-window counter per key. Returns the number of requests left in
    the window, raises 429 once the window is spent.
    """
    now = datetime.utcnow()
    window_start = now - timedelta(seconds=window_seconds)

    # window over: drop the counter so the next hit opens a fresh one
    await db.rate_limits.delete_one({"key": key, "created_at": {"$lt": window_start}})

    record = await db.rate_limits.find_one({"key": key})
    used = record["count"] if record else 0

    if used >= max_requests:
        logger.warning("RATE_LIMITED key=%s", key.split(":", 1)[0])
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please try again later.",
        )

    await db.rate_limits.update_one(
        {"key": key},
        {"$inc": {"count": 1}, "$setOnInsert": {"created_at": now}},
        upsert=True,
    )
    return max_requests - used - 1
