import logging
from datetime import datetime

logger = logging.getLogger(__name__)

# credential material never goes into the audit trail
REDACTED_KEYS = {"password", "new_password", "current_password", "token", "reset_token", "account_number"}


def _redact(metadata: dict | None) -> dict:
    if not metadata:
        return {}
    return {
        key: "[redacted]" if key in REDACTED_KEYS else value
        for key, value in metadata.items()
    }


async def log_audit(
    db,
    actor_id: str | None,
    actor_role: str,
    action: str,
    metadata: dict | None = None,
):
    """Append one account lifecycle event to `audit_logs`."""
    entry = {
        "action": action,
        "actor_id": actor_id,
        "actor_role": actor_role,
        "metadata": _redact(metadata),
        "created_at": datetime.utcnow(),
    }
    logger.info("AUDIT action=%s actor=%s role=%s", action, actor_id, actor_role)
    await db.audit_logs.insert_one(entry)
