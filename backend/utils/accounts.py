import logging
from datetime import datetime

from config.constants import DEFAULT_SELLER_COMMISSION
from config.env import ADMIN_EMAIL, ADMIN_PASSWORD
from models.account import AccountType, initial_state
from utils.credentials import save_account
from utils.crypto import encrypt_bank_details
from utils.validators import normalize_email

logger = logging.getLogger(__name__)

CONFLICT_MESSAGES = {
    "email": "An account with this email address already exists",
    "phone": "An account with this phone number already exists",
    "business_registration_number": "A seller account with this business registration number already exists",
    "tax_number": "A seller account with this tax number already exists",
}


def _credential_fields(account_type: AccountType, email: str, password: str, now: datetime) -> dict:
    return {
        "email": email,
        "password": password,
        "login_attempts": 0,
        "state": initial_state(account_type, now),
        "is_active": True,
        "is_email_verified": False,
        "last_login_at": None,
        "created_at": now,
    }


def build_buyer_document(data, now: datetime | None = None) -> dict:
    now = now or datetime.utcnow()
    doc = _credential_fields(AccountType.BUYER, data.email, data.password, now)
    doc.update({
        "first_name": data.first_name,
        "last_name": data.last_name,
        "phone": data.phone,
        "date_of_birth": data.date_of_birth.isoformat() if data.date_of_birth else None,
        "address": data.address.model_dump() if data.address else None,
    })
    return doc


def build_seller_document(data, now: datetime | None = None) -> dict:
    now = now or datetime.utcnow()
    doc = _credential_fields(AccountType.SELLER, data.email, data.password, now)
    doc.update({
        "first_name": data.first_name,
        "last_name": data.last_name,
        "phone": data.phone,
        "business_name": data.business_name,
        "business_type": data.business_type.value,
        "business_description": data.business_description,
        "business_registration_number": data.business_registration_number,
        "tax_number": data.tax_number,
        "business_address": data.business_address.model_dump(),
        "categories": data.categories,
        "bank_details": None,
        "business_logo": None,
        "rating": 0,
        "total_reviews": 0,
        "total_sales": 0,
        "total_orders": 0,
        "commission": DEFAULT_SELLER_COMMISSION,
    })
    return doc


def build_admin_document(data, created_by: str | None = None, now: datetime | None = None) -> dict:
    """
    Admin created by another admin. The plaintext password is left for the
    hashing gate in `save_account`.
    """
    now = now or datetime.utcnow()
    doc = _credential_fields(AccountType.ADMIN, data.email, data.password, now)
    doc.update({
        "first_name": data.first_name,
        "last_name": data.last_name,
        "phone": data.phone,
        "role": data.role.value,
        "department": data.department.value,
        "job_title": data.job_title,
        "created_by": created_by,
    })
    return doc


async def find_registration_conflict(collection, candidates: dict) -> str | None:
    """
    Return the first field whose value is already taken in `collection`.
    Empty candidate values are ignored.
    """
    clauses = [{field: value} for field, value in candidates.items() if value]
    if not clauses:
        return None

    existing = await collection.find_one({"$or": clauses}, {"password": 0})
    if not existing:
        return None

    for field, value in candidates.items():
        if value and existing.get(field) == value:
            return field
    return "email"


async def apply_bank_details(collection, seller_id, details: dict) -> dict:
    stored = encrypt_bank_details(details)
    await collection.update_one(
        {"_id": seller_id},
        {"$set": {"bank_details": stored, "updated_at": datetime.utcnow()}},
    )
    return stored


async def ensure_admin_account(db) -> bool:
    """
    Create the bootstrap admin from ADMIN_EMAIL / ADMIN_PASSWORD if missing.
    """
    if not ADMIN_EMAIL or not ADMIN_PASSWORD:
        return False

    email = normalize_email(ADMIN_EMAIL)
    if await db.admins.find_one({"email": email}, {"_id": 1}):
        return False

    doc = _credential_fields(AccountType.ADMIN, email, ADMIN_PASSWORD, datetime.utcnow())
    doc["is_email_verified"] = True
    doc["first_name"] = "Platform"
    doc["last_name"] = "Admin"
    doc["role"] = "super_admin"

    account = await save_account(db.admins, doc, doc.keys())
    logger.info("ADMIN_BOOTSTRAPPED account=%s", account["_id"])
    return True
