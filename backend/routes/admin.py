from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from pymongo.errors import DuplicateKeyError

from database import get_db
from models.account import VerificationStatus
from models.admin import AdminCreate, AdminRole
from models.seller import SuspendSeller, VerifySeller
from utils.account_state import (
    InvalidTransition,
    StateConflict,
    reinstate,
    set_active,
    transition_state,
)
from utils.accounts import CONFLICT_MESSAGES, build_admin_document, find_registration_conflict
from utils.audit import log_audit
from utils.credentials import SAFE_PROJECTION, reset_login_attempts, save_account
from utils.crypto import decrypt_account_number
from utils.guards import account_collection, parse_object_id
from utils.security import require_account_type
from utils.serializers import serialize_account


router = APIRouter(prefix="/api/admin", tags=["Admin"])


# =====================================================
# HELPERS
# =====================================================

async def _run_transition(coro):
    try:
        return await coro
    except LookupError:
        raise HTTPException(404, "Account not found")
    except InvalidTransition as e:
        raise HTTPException(400, str(e))
    except StateConflict:
        raise HTTPException(409, "Seller state changed, reload and retry")
    except ValueError as e:
        raise HTTPException(400, str(e))


# =====================================================
# VIEW SELLERS
# =====================================================

@router.get("/sellers")
async def list_sellers(
    status: Optional[VerificationStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    admin=Depends(require_account_type("admin")),
    db=Depends(get_db),
):
    query = {}
    if status:
        query["state.status"] = status.value

    cursor = (
        db.sellers.find(query, SAFE_PROJECTION)
        .sort("created_at", 1)
        .skip(skip)
        .limit(limit)
    )
    sellers = await cursor.to_list(length=limit)

    return {
        "count": len(sellers),
        "sellers": [serialize_account(s, "seller") for s in sellers],
    }


@router.get("/sellers/{seller_id}")
async def seller_detail(
    seller_id: str,
    admin=Depends(require_account_type("admin")),
    db=Depends(get_db),
):
    seller = await db.sellers.find_one({"_id": parse_object_id(seller_id, "seller_id")}, SAFE_PROJECTION)
    if not seller:
        raise HTTPException(404, "Seller not found")

    data = serialize_account(seller, "seller")
    if seller.get("bank_details"):
        try:
            data["bank_details"]["account_number"] = decrypt_account_number(seller["bank_details"])
        except ValueError:
            raise HTTPException(500, "Stored bank details could not be decrypted")

    return data

# =========================
# VERIFY / REJECT SELLER
# =========================
@router.post("/sellers/{seller_id}/verify")
async def verify_seller(
    seller_id: str,
    data: VerifySeller,
    admin=Depends(require_account_type("admin")),
    db=Depends(get_db),
):
    oid = parse_object_id(seller_id, "seller_id")
    target = VerificationStatus.VERIFIED if data.action == "approve" else VerificationStatus.REJECTED

    seller = await _run_transition(
        transition_state(
            db.sellers,
            oid,
            target,
            actor_id=str(admin["_id"]),
            reason=data.reason,
        )
    )

    await log_audit(
        db,
        actor_id=str(admin["_id"]),
        actor_role="admin",
        action="SELLER_VERIFIED" if target == VerificationStatus.VERIFIED else "SELLER_REJECTED",
        metadata={"seller_id": seller_id, "reason": data.reason},
    )

    return {
        "message": "Seller verified" if target == VerificationStatus.VERIFIED else "Seller rejected",
        "seller": serialize_account(seller, "seller"),
    }

# ---------------------------
# SUSPEND SELLER
# ---------------------------
@router.post("/sellers/{seller_id}/suspend")
async def suspend_seller(
    seller_id: str,
    data: SuspendSeller,
    admin=Depends(require_account_type("admin")),
    db=Depends(get_db),
):
    seller = await _run_transition(
        transition_state(
            db.sellers,
            parse_object_id(seller_id, "seller_id"),
            VerificationStatus.SUSPENDED,
            actor_id=str(admin["_id"]),
            reason=data.reason,
        )
    )

    await log_audit(
        db=db,
        actor_id=str(admin["_id"]),
        actor_role="admin",
        action="SELLER_SUSPENDED",
        metadata={"seller_id": seller_id, "reason": data.reason},
    )

    return {"message": "Seller suspended", "seller": serialize_account(seller, "seller")}


# ---------------------------
# REINSTATE SELLER
# ---------------------------
@router.post("/sellers/{seller_id}/reinstate")
async def reinstate_seller(
    seller_id: str,
    admin=Depends(require_account_type("admin")),
    db=Depends(get_db),
):
    seller = await _run_transition(
        reinstate(
            db.sellers,
            parse_object_id(seller_id, "seller_id"),
            actor_id=str(admin["_id"]),
        )
    )

    await log_audit(
        db=db,
        actor_id=str(admin["_id"]),
        actor_role="admin",
        action="SELLER_REINSTATED",
        metadata={"seller_id": seller_id, "status": seller["state"]["status"]},
    )

    return {"message": "Seller reinstated", "seller": serialize_account(seller, "seller")}


# =========================================================
# ACCOUNT KILL SWITCH / UNLOCK (ANY ACCOUNT TYPE)
# =========================================================

async def _set_active(db, admin, account_type: str, account_id: str, active: bool):
    collection = account_collection(db, account_type)
    oid = parse_object_id(account_id, "account_id")

    if not active and account_type == "admin" and oid == admin["_id"]:
        raise HTTPException(400, "Admins cannot deactivate themselves")

    try:
        account = await set_active(collection, oid, active, actor_id=str(admin["_id"]))
    except LookupError:
        raise HTTPException(404, "Account not found")

    await log_audit(
        db=db,
        actor_id=str(admin["_id"]),
        actor_role="admin",
        action="ACCOUNT_ACTIVATED" if active else "ACCOUNT_DEACTIVATED",
        metadata={"account_id": account_id, "account_type": account_type},
    )

    return serialize_account(account, account_type)


@router.post("/accounts/{account_type}/{account_id}/activate")
async def activate_account(
    account_type: str,
    account_id: str,
    admin=Depends(require_account_type("admin")),
    db=Depends(get_db),
):
    account = await _set_active(db, admin, account_type, account_id, True)
    return {"message": "Account activated", "account": account}


@router.post("/accounts/{account_type}/{account_id}/deactivate")
async def deactivate_account(
    account_type: str,
    account_id: str,
    admin=Depends(require_account_type("admin")),
    db=Depends(get_db),
):
    account = await _set_active(db, admin, account_type, account_id, False)
    return {"message": "Account deactivated", "account": account}


@router.post("/accounts/{account_type}/{account_id}/unlock")
async def unlock_account(
    account_type: str,
    account_id: str,
    admin=Depends(require_account_type("admin")),
    db=Depends(get_db),
):
    collection = account_collection(db, account_type)
    oid = parse_object_id(account_id, "account_id")

    if not await collection.find_one({"_id": oid}, {"_id": 1}):
        raise HTTPException(404, "Account not found")

    await reset_login_attempts(collection, oid)

    await log_audit(
        db=db,
        actor_id=str(admin["_id"]),
        actor_role="admin",
        action="ACCOUNT_UNLOCKED",
        metadata={"account_id": account_id, "account_type": account_type},
    )

    return {"message": "Account unlocked"}


# =========================================================
# ADMIN MANAGEMENT
# =========================================================

@router.post("/admins", status_code=201)
async def create_admin(
    data: AdminCreate,
    admin=Depends(require_account_type("admin")),
    db=Depends(get_db),
):
    field = await find_registration_conflict(db.admins, {"email": data.email, "phone": data.phone})
    if field:
        raise HTTPException(409, {"message": CONFLICT_MESSAGES[field], "field": field})

    doc = build_admin_document(data, created_by=str(admin["_id"]))
    try:
        created = await save_account(db.admins, doc, doc.keys())
    except DuplicateKeyError:
        raise HTTPException(409, {"message": CONFLICT_MESSAGES["email"], "field": "email"})

    await log_audit(
        db=db,
        actor_id=str(admin["_id"]),
        actor_role="admin",
        action="ADMIN_CREATED",
        metadata={"admin_id": str(created["_id"]), "email": created["email"], "role": created["role"]},
    )

    return {"message": "Admin created", "admin": serialize_account(created, "admin")}


@router.get("/admins")
async def list_admins(
    role: Optional[AdminRole] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    admin=Depends(require_account_type("admin")),
    db=Depends(get_db),
):
    query = {}
    if role:
        query["role"] = role.value

    cursor = (
        db.admins.find(query, SAFE_PROJECTION)
        .sort("created_at", -1)
        .skip(skip)
        .limit(limit)
    )
    admins = await cursor.to_list(length=limit)

    return {
        "count": len(admins),
        "admins": [serialize_account(a, "admin") for a in admins],
    }
