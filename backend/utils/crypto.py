import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from config.env import BANK_DATA_ENCRYPTION_KEY, JWT_SECRET


class EncryptionKeyMissing(RuntimeError):
    pass


def _build_fernet() -> Fernet:
    seed = (BANK_DATA_ENCRYPTION_KEY or JWT_SECRET or "").strip()
    if not seed:
        raise EncryptionKeyMissing("Bank data encryption key is not configured")
    key = base64.urlsafe_b64encode(hashlib.sha256(seed.encode("utf-8")).digest())
    return Fernet(key)


def encrypt_bank_details(details: dict) -> dict:
    """
    Return a copy of seller bank details that is safe to store.

    The account number is kept only as a Fernet token plus its last four
    digits for display.
    """
    stored = {k: v for k, v in details.items() if k != "account_number" and v is not None}

    number = (details.get("account_number") or "").replace(" ", "")
    if number:
        stored["account_number_encrypted"] = _build_fernet().encrypt(number.encode("utf-8")).decode("utf-8")
        stored["account_number_last4"] = number[-4:]

    return stored


def decrypt_account_number(stored: dict) -> str | None:
    token = stored.get("account_number_encrypted")
    if not token:
        return None
    try:
        raw = _build_fernet().decrypt(token.encode("utf-8"))
    except InvalidToken:
        raise ValueError("Invalid encrypted account number")
    return raw.decode("utf-8")


def public_bank_details(stored: dict | None) -> dict | None:
    if not stored:
        return None
    public = {k: v for k, v in stored.items() if k != "account_number_encrypted"}
    last4 = stored.get("account_number_last4")
    if last4:
        public["account_number"] = "****" + last4
    return public
