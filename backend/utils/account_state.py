import logging
from datetime import datetime

from pymongo import ReturnDocument

from models.account import VerificationStatus
from utils.credentials import SAFE_PROJECTION

logger = logging.getLogger(__name__)

PENDING = VerificationStatus.PENDING
VERIFIED = VerificationStatus.VERIFIED
REJECTED = VerificationStatus.REJECTED
SUSPENDED = VerificationStatus.SUSPENDED

# Suspension can be applied from every other state; reinstatement returns
# to the state recorded at suspension time.
ALLOWED_TRANSITIONS = {
    PENDING: {VERIFIED, REJECTED, SUSPENDED},
    VERIFIED: {SUSPENDED},
    REJECTED: {SUSPENDED},
    SUSPENDED: {PENDING, VERIFIED, REJECTED},
}

REASON_REQUIRED = {REJECTED, SUSPENDED}


class InvalidTransition(Exception):
    def __init__(self, current, target):
        self.current = VerificationStatus(current)
        self.target = VerificationStatus(target)
        super().__init__(f"Cannot move account from {self.current.value} to {self.target.value}")


class StateConflict(Exception):
    """The account state changed between read and write."""


def current_status(account: dict) -> VerificationStatus:
    state = account.get("state") or {}
    return VerificationStatus(state.get("status", PENDING.value))


def check_transition(current, target, reason: str | None = None) -> None:
    current = VerificationStatus(current)
    target = VerificationStatus(target)

    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(current, target)

    # reinstatement restores the earlier state as-is
    if current == SUSPENDED:
        return

    if target in REASON_REQUIRED and not (reason or "").strip():
        raise ValueError(f"Reason required to mark account {target.value}")


async def transition_state(
    collection,
    account_id,
    target,
    *,
    actor_id: str | None = None,
    reason: str | None = None,
    now: datetime | None = None,
):
    """
    Move an account to `target`, compare-and-swap on the current status.

    Raises LookupError when the account is missing, InvalidTransition for a
    move the workflow does not allow, and StateConflict when another writer
    changed the state first.
    """
    account = await collection.find_one({"_id": account_id}, SAFE_PROJECTION)
    if not account:
        raise LookupError("Account not found")

    current = current_status(account)
    target = VerificationStatus(target)

    if current == SUSPENDED and target != SUSPENDED:
        previous = (account.get("state") or {}).get("previous_status")
        if previous and VerificationStatus(previous) != target:
            raise InvalidTransition(current, target)

    check_transition(current, target, reason)

    now = now or datetime.utcnow()
    new_state = {
        "status": target.value,
        "reason": reason,
        "previous_status": current.value if target == SUSPENDED else None,
        "changed_at": now,
        "changed_by": actor_id,
    }

    updated = await collection.find_one_and_update(
        {"_id": account_id, "state.status": current.value},
        {"$set": {"state": new_state, "updated_at": now}},
        projection=SAFE_PROJECTION,
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise StateConflict("Account state changed concurrently")

    logger.info(
        "ACCOUNT_STATE_CHANGED account=%s from=%s to=%s actor=%s",
        account_id,
        current.value,
        target.value,
        actor_id,
    )
    return updated


async def reinstate(collection, account_id, *, actor_id: str | None = None, now: datetime | None = None):
    account = await collection.find_one({"_id": account_id}, SAFE_PROJECTION)
    if not account:
        raise LookupError("Account not found")

    current = current_status(account)
    if current != SUSPENDED:
        raise InvalidTransition(current, VERIFIED)

    previous = (account.get("state") or {}).get("previous_status") or VERIFIED.value
    return await transition_state(
        collection,
        account_id,
        previous,
        actor_id=actor_id,
        now=now,
    )


async def set_active(
    collection,
    account_id,
    active: bool,
    *,
    actor_id: str | None = None,
    now: datetime | None = None,
):
    """
    Flip the kill switch. Reactivation also clears the lockout fields.
    """
    now = now or datetime.utcnow()
    update = {"$set": {"is_active": active, "updated_at": now}}

    if active:
        update["$set"]["login_attempts"] = 0
        update["$unset"] = {"lock_until": ""}

    updated = await collection.find_one_and_update(
        {"_id": account_id},
        update,
        projection=SAFE_PROJECTION,
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise LookupError("Account not found")

    logger.info("ACCOUNT_ACTIVE_CHANGED account=%s active=%s actor=%s", account_id, active, actor_id)
    return updated


def legacy_flags(account: dict) -> dict:
    status = current_status(account)
    is_active = account.get("is_active", True)

    if not is_active:
        summary = "inactive"
    elif status in (SUSPENDED, PENDING):
        summary = status.value
    else:
        summary = "active"

    return {
        "verification_status": status.value,
        "is_verified": status == VERIFIED,
        "status": summary,
    }


def can_participate(account: dict) -> bool:
    return account.get("is_active", True) and current_status(account) == VERIFIED
