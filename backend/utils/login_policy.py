import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from config.constants import MAX_LOGIN_ATTEMPTS
from utils.account_state import SUSPENDED, current_status
from utils.credentials import (
    compare_password,
    hash_on_save,
    increment_login_attempts,
    is_locked,
    lock_expired,
    reset_login_attempts,
)
from utils.hash import needs_rehash

logger = logging.getLogger(__name__)


class LoginOutcome(str, Enum):
    OK = "ok"
    INVALID = "invalid"
    LOCKED = "locked"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


@dataclass
class LoginResult:
    outcome: LoginOutcome
    account: Optional[dict] = None
    attempts_remaining: Optional[int] = None
    lock_until: Optional[datetime] = None


async def evaluate_login(collection, account: dict, password: str, now: datetime | None = None) -> LoginResult:
    """
    Decide a login attempt against a stored account (loaded with its hash).

    A locked account is refused before the password is looked at, so a
    correct password does not get through while `lock_until` is ahead.
    """
    now = now or datetime.utcnow()

    if is_locked(account, now):
        logger.info("LOGIN_REFUSED_LOCKED account=%s", account["_id"])
        return LoginResult(
            outcome=LoginOutcome.LOCKED,
            account=account,
            lock_until=account["lock_until"],
        )

    if not await compare_password(account, password):
        updated = await increment_login_attempts(collection, account, now) or account

        if is_locked(updated, now):
            return LoginResult(
                outcome=LoginOutcome.LOCKED,
                account=updated,
                attempts_remaining=0,
                lock_until=updated["lock_until"],
            )

        attempts = updated.get("login_attempts", 0)
        return LoginResult(
            outcome=LoginOutcome.INVALID,
            account=updated,
            attempts_remaining=max(MAX_LOGIN_ATTEMPTS - attempts, 0),
        )

    if not account.get("is_active", True):
        return LoginResult(outcome=LoginOutcome.INACTIVE, account=account)

    if current_status(account) == SUSPENDED:
        return LoginResult(outcome=LoginOutcome.SUSPENDED, account=account)

    if account.get("login_attempts") or lock_expired(account, now):
        await reset_login_attempts(collection, account["_id"], now)

    changes = {"last_login_at": now}

    if needs_rehash(account["password"]):
        changes.update(await hash_on_save({"password": password}, {"password"}))
        logger.info("PASSWORD_REHASHED account=%s", account["_id"])

    await collection.update_one({"_id": account["_id"]}, {"$set": changes})

    account = {k: v for k, v in account.items() if k not in ("password", "lock_until")}
    account.update({k: v for k, v in changes.items() if k != "password"})
    account["login_attempts"] = 0

    return LoginResult(outcome=LoginOutcome.OK, account=account)
