import calendar
from datetime import datetime, timedelta
from jose import jwt, JWTError
from config.env import (
    JWT_SECRET,
    JWT_ALGORITHM,
    BUYER_ACCESS_TOKEN_MINUTES,
    SELLER_ACCESS_TOKEN_MINUTES,
    ADMIN_ACCESS_TOKEN_MINUTES,
    REFRESH_TOKEN_DAYS,
)

ACCESS_TOKEN_MINUTES = {
    "buyer": BUYER_ACCESS_TOKEN_MINUTES,
    "seller": SELLER_ACCESS_TOKEN_MINUTES,
    "admin": ADMIN_ACCESS_TOKEN_MINUTES,
}


class TokenError(Exception):
    pass


def _require_jwt_secret() -> str:
    secret = (JWT_SECRET or "").strip()
    if not secret:
        raise RuntimeError("JWT_SECRET is not configured")
    return secret

def _encode(payload: dict, lifetime: timedelta, issued_at: datetime | None = None) -> str:
    issued_at = issued_at or datetime.utcnow()
    payload = payload.copy()
    payload.update({
        "exp": issued_at + lifetime,
        "iat": issued_at
    })
    return jwt.encode(payload, _require_jwt_secret(), algorithm=JWT_ALGORITHM)

def create_access_token(account_id: str, account_type: str, issued_at: datetime | None = None) -> str:
    minutes = ACCESS_TOKEN_MINUTES[account_type]
    return _encode(
        {"sub": account_id, "type": account_type, "use": "access"},
        timedelta(minutes=minutes),
        issued_at,
    )

def create_refresh_token(account_id: str, account_type: str, issued_at: datetime | None = None) -> str:
    return _encode(
        {"sub": account_id, "type": account_type, "use": "refresh"},
        timedelta(days=REFRESH_TOKEN_DAYS),
        issued_at,
    )

def decode_token(token: str, expected_use: str = "access") -> dict:
    try:
        payload = jwt.decode(token, _require_jwt_secret(), algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        raise TokenError(str(e))

    if payload.get("use") != expected_use:
        raise TokenError("Wrong token type")
    if payload.get("type") not in ACCESS_TOKEN_MINUTES or not payload.get("sub"):
        raise TokenError("Invalid token payload")
    return payload

def issued_before(payload: dict, moment: datetime | None) -> bool:
    """
    True when the token was issued before `moment` (naive UTC).
    `iat` has whole-second precision, so a token from the same second passes.
    """
    if not moment:
        return False
    return payload.get("iat", 0) < calendar.timegm(moment.utctimetuple())
