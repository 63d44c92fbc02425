from config.constants import TOP_SELLERS_MAX_LIMIT
from models.account import VerificationStatus

PUBLIC_SELLER_FILTER = {
    "state.status": VerificationStatus.VERIFIED.value,
    "is_active": True,
}


async def get_verified_seller(db, seller_id):
    return await db.sellers.find_one(
        {"_id": seller_id, **PUBLIC_SELLER_FILTER},
        {"password": 0},
    )


async def find_verified_sellers(db, *, category: str | None = None, skip: int = 0, limit: int = 20):
    query = dict(PUBLIC_SELLER_FILTER)
    if category:
        query["categories"] = category

    cursor = (
        db.sellers.find(query, {"password": 0})
        .sort("business_name", 1)
        .skip(skip)
        .limit(limit)
    )
    return await cursor.to_list(length=limit)


async def find_top_sellers(db, limit: int = 10):
    limit = max(1, min(limit, TOP_SELLERS_MAX_LIMIT))
    cursor = (
        db.sellers.find(PUBLIC_SELLER_FILTER, {"password": 0})
        .sort([("total_sales", -1), ("rating", -1)])
        .limit(limit)
    )
    return await cursor.to_list(length=limit)
