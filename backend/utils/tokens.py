import hashlib
import secrets
from datetime import datetime, timedelta

from pymongo import ReturnDocument

from utils.credentials import SAFE_PROJECTION

EMAIL_VERIFICATION = "email_verification"
PASSWORD_RESET = "password_reset"


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


async def issue_account_token(collection, account_id, purpose: str, ttl: timedelta) -> str:
    """
    Store a fresh one-time token for the account and return the raw value.
    Only the digest is persisted; issuing again replaces the previous one.
    """
    token = generate_token()
    now = datetime.utcnow()

    await collection.update_one(
        {"_id": account_id},
        {"$set": {
            f"{purpose}_token_hash": hash_token(token),
            f"{purpose}_expires_at": now + ttl,
            "updated_at": now,
        }},
    )
    return token


async def consume_account_token(collection, purpose: str, token: str, now: datetime | None = None):
    now = now or datetime.utcnow()

    return await collection.find_one_and_update(
        {
            f"{purpose}_token_hash": hash_token(token),
            f"{purpose}_expires_at": {"$gt": now},
        },
        {"$unset": {
            f"{purpose}_token_hash": "",
            f"{purpose}_expires_at": "",
        }},
        projection=SAFE_PROJECTION,
        return_document=ReturnDocument.AFTER,
    )
