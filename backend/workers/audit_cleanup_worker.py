import asyncio
import logging
from datetime import datetime, timedelta

from config.constants import LOGIN_RATE_WINDOW_SECONDS, PASSWORD_RESET_RATE_WINDOW_SECONDS
from config.env import AUDIT_RETENTION_DAYS
from database import get_db

CHECK_INTERVAL_SECONDS = 60 * 60  # hourly
RATE_LIMIT_MAX_AGE = timedelta(seconds=max(LOGIN_RATE_WINDOW_SECONDS, PASSWORD_RESET_RATE_WINDOW_SECONDS))
logger = logging.getLogger(__name__)


async def purge_expired_records(db, now: datetime | None = None) -> dict:
    now = now or datetime.utcnow()

    audit = await db.audit_logs.delete_many({
        "created_at": {"$lt": now - timedelta(days=AUDIT_RETENTION_DAYS)}
    })
    limits = await db.rate_limits.delete_many({
        "created_at": {"$lt": now - RATE_LIMIT_MAX_AGE}
    })

    return {
        "audit_logs": audit.deleted_count,
        "rate_limits": limits.deleted_count,
    }


async def audit_cleanup_worker():
    db = get_db()

    while True:
        try:
            removed = await purge_expired_records(db)
            if any(removed.values()):
                logger.info(
                    "AUDIT_CLEANUP audit_logs=%s rate_limits=%s",
                    removed["audit_logs"],
                    removed["rate_limits"],
                )
        except Exception:
            logger.exception("AUDIT_CLEANUP_ERROR")

        await asyncio.sleep(CHECK_INTERVAL_SECONDS)
