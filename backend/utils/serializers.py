from bson import ObjectId
from datetime import datetime

from utils.account_state import legacy_flags
from utils.crypto import public_bank_details

# fields never exposed through the API
PRIVATE_FIELDS = {
    "password",
    "email_verification_token_hash",
    "email_verification_expires_at",
    "password_reset_token_hash",
    "password_reset_expires_at",
}


def serialize_value(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize_value(v) for v in value]
    return value


def serialize_account(account: dict, account_type: str) -> dict:
    data = {
        k: serialize_value(v)
        for k, v in account.items()
        if k not in PRIVATE_FIELDS and k != "_id"
    }
    data["id"] = str(account["_id"])
    data["user_type"] = account_type
    data["is_locked"] = bool(
        account.get("lock_until") and account["lock_until"] > datetime.utcnow()
    )
    data.update(legacy_flags(account))

    if "bank_details" in account:
        data["bank_details"] = public_bank_details(account.get("bank_details"))

    return data


def serialize_public_seller(seller: dict) -> dict:
    address = seller.get("business_address") or {}
    return {
        "id": str(seller["_id"]),
        "business_name": seller.get("business_name"),
        "business_type": seller.get("business_type"),
        "business_description": seller.get("business_description"),
        "categories": seller.get("categories", []),
        "city": address.get("city"),
        "country": address.get("country"),
        "rating": seller.get("rating", 0),
        "total_reviews": seller.get("total_reviews", 0),
        "total_sales": seller.get("total_sales", 0),
        "business_logo": seller.get("business_logo"),
    }
