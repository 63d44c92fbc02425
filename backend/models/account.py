from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional
from datetime import datetime
from enum import Enum

from utils.hash import is_password_hash


class AccountType(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class AccountState(BaseModel):
    status: VerificationStatus
    reason: Optional[str] = None
    previous_status: Optional[VerificationStatus] = None
    changed_at: datetime
    changed_by: Optional[str] = None


class CredentialRecord(BaseModel):
    email: EmailStr
    password: str

    # lockout
    login_attempts: int = 0
    lock_until: Optional[datetime] = None

    # approval + kill switch
    state: AccountState
    is_active: bool = True

    is_email_verified: bool = False
    last_login_at: Optional[datetime] = None
    password_changed_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime

    @field_validator("password")
    @classmethod
    def must_be_hashed(cls, v: str) -> str:
        if not is_password_hash(v):
            raise ValueError("Password must be stored as a hash")
        return v


def initial_state(account_type: AccountType, now: datetime) -> dict:
    status = (
        VerificationStatus.PENDING
        if account_type == AccountType.SELLER
        else VerificationStatus.VERIFIED
    )
    return {
        "status": status.value,
        "reason": None,
        "previous_status": None,
        "changed_at": now,
        "changed_by": None,
    }
