import asyncio
import logging
from datetime import datetime

from pymongo import ReturnDocument

from config.constants import LOCK_DURATION, MAX_LOGIN_ATTEMPTS
from models.account import CredentialRecord
from utils.hash import hash_password, verify_password

logger = logging.getLogger(__name__)

# Never hand the stored hash back to callers
SAFE_PROJECTION = {"password": 0}


# =====================================================
# HASHING GATE
# =====================================================

async def hash_on_save(doc: dict, modified_fields) -> dict:
    """
    Hash the plaintext `password` of a document about to be written.

    Only runs when `password` is one of the fields modified by this write,
    so a stored hash is never hashed a second time. Hashing errors
    propagate; callers must not write the document if this raises.
    """
    if "password" not in modified_fields:
        return doc

    plain = doc.get("password")
    if not plain:
        raise ValueError("Password is required")

    hashed = await asyncio.to_thread(hash_password, plain)

    prepared = dict(doc)
    prepared["password"] = hashed
    prepared["password_changed_at"] = datetime.utcnow()
    return prepared


async def save_account(collection, doc: dict, modified_fields) -> dict:
    """
    Persist an account document through the hashing gate.

    Documents without `_id` are inserted whole. Existing documents only get
    their modified fields written.
    """
    modified = set(modified_fields)
    prepared = await hash_on_save(doc, modified)

    if "password" in modified:
        modified.add("password_changed_at")

    now = datetime.utcnow()

    if "_id" not in prepared:
        prepared.setdefault("created_at", now)
        prepared["updated_at"] = now
        # raises ValidationError (a ValueError) before anything is written
        CredentialRecord.model_validate(prepared)
        result = await collection.insert_one(prepared)
        prepared["_id"] = result.inserted_id
        return prepared

    changes = {field: prepared[field] for field in modified if field in prepared}
    changes["updated_at"] = now

    await collection.update_one(
        {"_id": prepared["_id"]},
        {"$set": changes},
    )
    prepared["updated_at"] = now
    return prepared


async def set_password(collection, account_id, plain_password: str) -> None:
    await save_account(
        collection,
        {"_id": account_id, "password": plain_password},
        {"password"},
    )


# =====================================================
# COMPARATOR
# =====================================================

async def compare_password(account: dict, candidate: str) -> bool:
    stored = account.get("password")
    if not stored:
        return False
    return await asyncio.to_thread(verify_password, candidate, stored)


# =====================================================
# LOCKOUT
# =====================================================

def is_locked(account: dict, now: datetime | None = None) -> bool:
    lock_until = account.get("lock_until")
    if not lock_until:
        return False
    return lock_until > (now or datetime.utcnow())


def lock_expired(account: dict, now: datetime | None = None) -> bool:
    lock_until = account.get("lock_until")
    if not lock_until:
        return False
    return lock_until <= (now or datetime.utcnow())


async def increment_login_attempts(collection, account: dict, now: datetime | None = None):
    """
    Record one failed login using atomic operators only.

    An expired lock restarts the count at 1. Otherwise the counter is
    incremented, and the increment that reaches MAX_LOGIN_ATTEMPTS sets
    `lock_until` unless a lock is already active.
    """
    now = now or datetime.utcnow()
    account_id = account["_id"]

    if lock_expired(account, now):
        restarted = await collection.find_one_and_update(
            {"_id": account_id, "lock_until": {"$lte": now}},
            {
                "$set": {"login_attempts": 1, "updated_at": now},
                "$unset": {"lock_until": ""},
            },
            projection=SAFE_PROJECTION,
            return_document=ReturnDocument.AFTER,
        )
        if restarted is not None:
            return restarted

    updated = await collection.find_one_and_update(
        {"_id": account_id},
        {
            "$inc": {"login_attempts": 1},
            "$set": {"updated_at": now},
        },
        projection=SAFE_PROJECTION,
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        return None

    if updated.get("login_attempts", 0) >= MAX_LOGIN_ATTEMPTS and not is_locked(updated, now):
        locked = await collection.find_one_and_update(
            {
                "_id": account_id,
                "$or": [
                    {"lock_until": None},
                    {"lock_until": {"$lte": now}},
                ],
            },
            {"$set": {"lock_until": now + LOCK_DURATION}},
            projection=SAFE_PROJECTION,
            return_document=ReturnDocument.AFTER,
        )
        if locked is not None:
            logger.warning(
                "ACCOUNT_LOCKED account=%s attempts=%s until=%s",
                account_id,
                locked.get("login_attempts"),
                locked.get("lock_until"),
            )
            return locked

    return updated


async def reset_login_attempts(collection, account_id, now: datetime | None = None) -> None:
    await collection.update_one(
        {"_id": account_id},
        {
            "$set": {"login_attempts": 0, "updated_at": now or datetime.utcnow()},
            "$unset": {"lock_until": ""},
        },
    )
