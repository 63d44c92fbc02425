from passlib.context import CryptContext

from config.env import BCRYPT_ROUNDS

# bcrypt configuration
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=BCRYPT_ROUNDS,
    bcrypt__min_rounds=BCRYPT_ROUNDS,
)

# bcrypt hard limit
MAX_BCRYPT_BYTES = 72


def hash_password(password: str) -> str:
    """
    Hash a password using salted bcrypt.
    Enforces bcrypt 72-byte limit.
    """
    if not password:
        raise ValueError("Password is required")
    if len(password.encode("utf-8")) > MAX_BCRYPT_BYTES:
        raise ValueError("Password too long (max 72 bytes)")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """
    Verify password safely.
    A missing or unrecognised hash is a mismatch, never an error.
    """
    if not hashed_password or plain_password is None:
        return False
    if len(plain_password.encode("utf-8")) > MAX_BCRYPT_BYTES:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def needs_rehash(hashed_password: str) -> bool:
    try:
        return pwd_context.needs_update(hashed_password)
    except (ValueError, TypeError):
        return True


def is_password_hash(value: str | None) -> bool:
    if not value:
        return False
    return pwd_context.identify(value) is not None
