from fastapi import APIRouter, Depends, HTTPException, Query
from datetime import datetime
from typing import Optional

from database import get_db
from models.seller import SellerProfileUpdate
from utils.accounts import apply_bank_details
from utils.account_state import can_participate
from utils.audit import log_audit
from utils.crypto import EncryptionKeyMissing
from utils.guards import parse_object_id
from utils.security import get_current_seller
from utils.sellers import find_top_sellers, find_verified_sellers, get_verified_seller
from utils.serializers import serialize_account, serialize_public_seller

router = APIRouter(
    prefix="/api/sellers",
    tags=["Sellers"]
)


# ----------------------------------------
# OWN PROFILE
# ----------------------------------------

@router.get("/me")
async def my_profile(seller=Depends(get_current_seller)):
    data = serialize_account(seller, "seller")
    data["can_sell"] = can_participate(seller)
    return data


@router.put("/me")
async def update_my_profile(
    data: SellerProfileUpdate,
    seller=Depends(get_current_seller),
    db=Depends(get_db),
):
    changes = data.model_dump(exclude_unset=True, exclude={"bank_details"})
    if "business_address" in changes and changes["business_address"] is not None:
        changes["business_address"] = data.business_address.model_dump()

    if data.bank_details is not None:
        try:
            await apply_bank_details(db.sellers, seller["_id"], data.bank_details.model_dump())
        except EncryptionKeyMissing:
            raise HTTPException(status_code=500, detail="Bank data encryption key is not configured")

    if changes:
        changes["updated_at"] = datetime.utcnow()
        await db.sellers.update_one({"_id": seller["_id"]}, {"$set": changes})

    await log_audit(
        db=db,
        actor_id=str(seller["_id"]),
        actor_role="seller",
        action="SELLER_PROFILE_UPDATED",
        metadata={"fields": sorted(data.model_dump(exclude_unset=True).keys())},
    )

    updated = await db.sellers.find_one({"_id": seller["_id"]}, {"password": 0})
    return {"message": "Profile updated", "seller": serialize_account(updated, "seller")}


# ----------------------------------------
# PUBLIC LISTINGS
# ----------------------------------------

@router.get("")
async def list_sellers(
    category: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db=Depends(get_db),
):
    sellers = await find_verified_sellers(db, category=category, skip=skip, limit=limit)
    return {
        "count": len(sellers),
        "sellers": [serialize_public_seller(s) for s in sellers],
    }


@router.get("/top")
async def top_sellers(
    limit: int = Query(10, ge=1, le=50),
    db=Depends(get_db),
):
    sellers = await find_top_sellers(db, limit=limit)
    return {"sellers": [serialize_public_seller(s) for s in sellers]}


@router.get("/{seller_id}")
async def public_seller(seller_id: str, db=Depends(get_db)):
    seller = await get_verified_seller(db, parse_object_id(seller_id, "seller_id"))
    if not seller:
        raise HTTPException(status_code=404, detail="Seller not found")
    return serialize_public_seller(seller)
