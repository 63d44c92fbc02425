from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from datetime import datetime

from database import get_db
from utils.account_state import SUSPENDED, current_status
from utils.credentials import SAFE_PROJECTION
from utils.guards import account_collection
from utils.jwt import TokenError, decode_token, issued_before
from bson import ObjectId
from bson.errors import InvalidId

security = HTTPBearer()


async def get_current_account(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db=Depends(get_db),
):
    try:
        payload = decode_token(credentials.credentials)
    except TokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    account_type = payload["type"]
    try:
        account_id = ObjectId(payload["sub"])
    except InvalidId:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    collection = account_collection(db, account_type)
    account = await collection.find_one({"_id": account_id}, SAFE_PROJECTION)
    if not account:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    # tokens issued before the last password change are revoked
    if issued_before(payload, account.get("password_changed_at")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired, please log in again",
        )

    if not account.get("is_active", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account deactivated",
        )

    if current_status(account) == SUSPENDED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account suspended",
        )

    # Update last activity
    await collection.update_one(
        {"_id": account["_id"]},
        {"$set": {"last_active_at": datetime.utcnow()}}
    )

    account["account_type"] = account_type
    return account


def require_account_type(*allowed: str):
    async def checker(account=Depends(get_current_account)):
        if account["account_type"] not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return account

    return checker


async def get_current_seller(
    account=Depends(get_current_account),
):
    if account["account_type"] != "seller":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Seller access only",
        )
    return account
