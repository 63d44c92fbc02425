from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime
import logging

from pymongo.errors import DuplicateKeyError

from config.constants import (
    EMAIL_VERIFICATION_TTL,
    PASSWORD_RESET_TTL,
    LOGIN_RATE_LIMIT,
    LOGIN_RATE_WINDOW_SECONDS,
    REGISTER_RATE_LIMIT,
    REGISTER_RATE_WINDOW_SECONDS,
    PASSWORD_RESET_RATE_LIMIT,
    PASSWORD_RESET_RATE_WINDOW_SECONDS,
    MAX_LOGIN_ATTEMPTS,
)
from config.env import RETURN_DEBUG_TOKENS
from database import get_db
from models.user import (
    BuyerRegistration,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RefreshRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from models.seller import SellerRegistration
from utils.accounts import (
    CONFLICT_MESSAGES,
    build_buyer_document,
    build_seller_document,
    find_registration_conflict,
)
from utils.account_state import SUSPENDED, current_status
from utils.audit import log_audit
from utils.credentials import (
    SAFE_PROJECTION,
    compare_password,
    increment_login_attempts,
    is_locked,
    reset_login_attempts,
    save_account,
    set_password,
)
from utils.guards import account_collection
from utils.jwt import (
    TokenError,
    create_access_token,
    create_refresh_token,
    decode_token,
    issued_before,
)
from utils.login_policy import LoginOutcome, evaluate_login
from utils.rate_limit import rate_limit
from utils.security import get_current_account
from utils.serializers import serialize_account
from utils.tokens import (
    EMAIL_VERIFICATION,
    PASSWORD_RESET,
    consume_account_token,
    issue_account_token,
)
from bson import ObjectId
from bson.errors import InvalidId

router = APIRouter(prefix="/api/auth", tags=["Auth"])
logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = {
    "error": "Invalid credentials",
    "message": "Email or password is incorrect",
}

# ======================
# Helpers
# ======================

def _locked(lock_until) -> HTTPException:
    return HTTPException(
        status_code=423,
        detail={
            "error": "Account locked",
            "message": "Too many failed login attempts. Try again later.",
            "lock_until": lock_until.isoformat(),
        },
    )


def _session(account: dict, account_type: str, message: str) -> dict:
    account_id = str(account["_id"])
    return {
        "message": message,
        "user": serialize_account(account, account_type),
        "access_token": create_access_token(account_id, account_type),
        "refresh_token": create_refresh_token(account_id, account_type),
        "token_type": "bearer",
    }


async def _register(db, collection, account_type: str, doc: dict, conflict_fields: dict) -> dict:
    field = await find_registration_conflict(collection, conflict_fields)
    if field:
        raise HTTPException(
            status_code=409,
            detail={"message": CONFLICT_MESSAGES[field], "field": field},
        )

    try:
        account = await save_account(collection, doc, doc.keys())
    except DuplicateKeyError:
        raise HTTPException(
            status_code=409,
            detail={"message": CONFLICT_MESSAGES["email"], "field": "email"},
        )

    token = await issue_account_token(
        collection, account["_id"], EMAIL_VERIFICATION, EMAIL_VERIFICATION_TTL
    )
    logger.info("EMAIL_VERIFICATION_ISSUED account=%s type=%s", account["_id"], account_type)

    await log_audit(
        db=db,
        actor_id=str(account["_id"]),
        actor_role=account_type,
        action=f"{account_type.upper()}_REGISTERED",
        metadata={"email": account["email"]},
    )

    response = _session(account, account_type, "Registration successful")
    response["email_verification_sent"] = True
    if RETURN_DEBUG_TOKENS:
        response["email_verification_token"] = token
    return response

# ======================
# Registration
# ======================

@router.post("/register/buyer", status_code=201)
async def register_buyer(data: BuyerRegistration, db=Depends(get_db)):
    await rate_limit(
        db=db,
        key=f"register:buyer:{data.email}",
        max_requests=REGISTER_RATE_LIMIT,
        window_seconds=REGISTER_RATE_WINDOW_SECONDS,
    )

    return await _register(
        db,
        db.users,
        "buyer",
        build_buyer_document(data),
        {"email": data.email, "phone": data.phone},
    )


@router.post("/register/seller", status_code=201)
async def register_seller(data: SellerRegistration, db=Depends(get_db)):
    await rate_limit(
        db=db,
        key=f"register:seller:{data.email}",
        max_requests=REGISTER_RATE_LIMIT,
        window_seconds=REGISTER_RATE_WINDOW_SECONDS,
    )

    return await _register(
        db,
        db.sellers,
        "seller",
        build_seller_document(data),
        {
            "email": data.email,
            "phone": data.phone,
            "business_registration_number": data.business_registration_number,
            "tax_number": data.tax_number,
        },
    )

# ======================
# Login
# ======================

@router.post("/login")
async def login(data: LoginRequest, db=Depends(get_db)):
    collection = account_collection(db, data.user_type)

    await rate_limit(
        db=db,
        key=f"login:{data.user_type}:{data.email}",
        max_requests=LOGIN_RATE_LIMIT,
        window_seconds=LOGIN_RATE_WINDOW_SECONDS,
    )

    account = await collection.find_one({"email": data.email})
    if not account:
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)

    result = await evaluate_login(collection, account, data.password)

    if result.outcome == LoginOutcome.LOCKED:
        if result.attempts_remaining == 0:
            await log_audit(
                db=db,
                actor_id=str(account["_id"]),
                actor_role=data.user_type,
                action="ACCOUNT_LOCKED",
                metadata={"lock_until": result.lock_until.isoformat()},
            )
        raise _locked(result.lock_until)

    if result.outcome == LoginOutcome.INVALID:
        detail = dict(INVALID_CREDENTIALS)
        detail["attempts_remaining"] = result.attempts_remaining
        raise HTTPException(status_code=401, detail=detail)

    if result.outcome == LoginOutcome.INACTIVE:
        raise HTTPException(
            status_code=403,
            detail={
                "error": "Account deactivated",
                "message": "Your account has been deactivated. Please contact support to reactivate.",
            },
        )

    if result.outcome == LoginOutcome.SUSPENDED:
        raise HTTPException(
            status_code=403,
            detail={
                "error": "Account suspended",
                "message": "Your account has been suspended. Please contact support.",
            },
        )

    return _session(result.account, data.user_type, "Login successful")

# ======================
# Tokens
# ======================

@router.post("/refresh-token")
async def refresh_token(data: RefreshRequest, db=Depends(get_db)):
    try:
        payload = decode_token(data.refresh_token, expected_use="refresh")
        account_id = ObjectId(payload["sub"])
    except (TokenError, InvalidId):
        raise HTTPException(status_code=401, detail="Refresh token is invalid or expired")

    account_type = payload["type"]
    collection = account_collection(db, account_type)

    account = await collection.find_one({"_id": account_id}, SAFE_PROJECTION)
    if (
        not account
        or not account.get("is_active", True)
        or current_status(account) == SUSPENDED
        or issued_before(payload, account.get("password_changed_at"))
    ):
        raise HTTPException(status_code=401, detail="Refresh token is invalid or expired")

    return {
        "message": "Token refreshed successfully",
        "access_token": create_access_token(str(account_id), account_type),
        "refresh_token": create_refresh_token(str(account_id), account_type),
        "token_type": "bearer",
    }

# ======================
# Current User
# ======================

@router.get("/me")
async def me(account=Depends(get_current_account)):
    return {"user": serialize_account(account, account["account_type"])}

# ======================
# Email Verification
# ======================

@router.post("/verify-email")
async def verify_email(data: VerifyEmailRequest, db=Depends(get_db)):
    collection = account_collection(db, data.user_type)

    account = await consume_account_token(collection, EMAIL_VERIFICATION, data.token)
    if not account:
        raise HTTPException(
            status_code=400,
            detail="Email verification token is invalid or has expired",
        )

    now = datetime.utcnow()
    await collection.update_one(
        {"_id": account["_id"]},
        {"$set": {"is_email_verified": True, "email_verified_at": now, "updated_at": now}},
    )

    await log_audit(
        db=db,
        actor_id=str(account["_id"]),
        actor_role=data.user_type,
        action="EMAIL_VERIFIED",
        metadata={"email": account["email"]},
    )

    return {
        "message": "Email verified successfully",
        "user": {"id": str(account["_id"]), "email": account["email"], "is_email_verified": True},
    }

# ======================
# Password Reset
# ======================

@router.post("/forgot-password")
async def forgot_password(data: ForgotPasswordRequest, db=Depends(get_db)):
    collection = account_collection(db, data.user_type)

    await rate_limit(
        db=db,
        key=f"forgot:{data.user_type}:{data.email}",
        max_requests=PASSWORD_RESET_RATE_LIMIT,
        window_seconds=PASSWORD_RESET_RATE_WINDOW_SECONDS,
    )

    # Same response either way to prevent email enumeration
    response = {
        "message": "Password reset instructions sent",
        "note": "If an account with this email exists, you will receive password reset instructions.",
    }

    account = await collection.find_one({"email": data.email}, {"_id": 1})
    if not account:
        return response

    token = await issue_account_token(collection, account["_id"], PASSWORD_RESET, PASSWORD_RESET_TTL)
    logger.info("PASSWORD_RESET_ISSUED account=%s type=%s", account["_id"], data.user_type)

    await log_audit(
        db=db,
        actor_id=str(account["_id"]),
        actor_role=data.user_type,
        action="PASSWORD_RESET_REQUESTED",
    )

    if RETURN_DEBUG_TOKENS:
        response["reset_token"] = token
    return response


@router.post("/reset-password")
async def reset_password(data: ResetPasswordRequest, db=Depends(get_db)):
    collection = account_collection(db, data.user_type)

    account = await consume_account_token(collection, PASSWORD_RESET, data.token)
    if not account:
        raise HTTPException(
            status_code=400,
            detail="Password reset token is invalid or has expired",
        )

    await set_password(collection, account["_id"], data.password)
    await reset_login_attempts(collection, account["_id"])

    await log_audit(
        db=db,
        actor_id=str(account["_id"]),
        actor_role=data.user_type,
        action="PASSWORD_RESET_COMPLETED",
        metadata={"email": account["email"]},
    )

    return {
        "message": "Password reset successful",
        "note": "You can now login with your new password",
    }


@router.post("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    account=Depends(get_current_account),
    db=Depends(get_db),
):
    account_type = account["account_type"]
    collection = account_collection(db, account_type)

    stored = await collection.find_one(
        {"_id": account["_id"]},
        {"password": 1, "login_attempts": 1, "lock_until": 1},
    )
    if not stored:
        raise HTTPException(status_code=404, detail="Account not found")

    # wrong guesses here count toward the same lockout as /login
    if is_locked(stored):
        raise _locked(stored["lock_until"])

    if not await compare_password(stored, data.current_password):
        updated = await increment_login_attempts(collection, stored) or stored

        if is_locked(updated):
            await log_audit(
                db=db,
                actor_id=str(account["_id"]),
                actor_role=account_type,
                action="ACCOUNT_LOCKED",
                metadata={"lock_until": updated["lock_until"].isoformat(), "via": "change-password"},
            )
            raise _locked(updated["lock_until"])

        raise HTTPException(
            status_code=400,
            detail={
                "message": "Current password is incorrect",
                "attempts_remaining": max(MAX_LOGIN_ATTEMPTS - updated.get("login_attempts", 0), 0),
            },
        )

    await set_password(collection, account["_id"], data.new_password)
    if stored.get("login_attempts"):
        await reset_login_attempts(collection, account["_id"])

    await log_audit(
        db=db,
        actor_id=str(account["_id"]),
        actor_role=account_type,
        action="PASSWORD_CHANGED",
    )

    # earlier tokens are now revoked; hand back a fresh pair
    account_id = str(account["_id"])
    return {
        "message": "Password updated successfully",
        "access_token": create_access_token(account_id, account_type),
        "refresh_token": create_refresh_token(account_id, account_type),
        "token_type": "bearer",
    }

# ======================
# Logout
# ======================

@router.post("/logout")
async def logout(account=Depends(get_current_account), db=Depends(get_db)):
    # tokens are stateless; the client drops them
    await log_audit(
        db=db,
        actor_id=str(account["_id"]),
        actor_role=account["account_type"],
        action="LOGOUT",
    )
    return {"message": "Logged out successfully"}
