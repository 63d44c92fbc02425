from fastapi import HTTPException
from bson import ObjectId
from bson.errors import InvalidId

from config.constants import ACCOUNT_COLLECTIONS

# -------------------------------
# ObjectId Guard
# -------------------------------

def parse_object_id(value: str, name: str = "id") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail=f"Invalid {name}")


# -------------------------------
# Account Type Guard
# -------------------------------

def account_collection(db, account_type: str):
    name = ACCOUNT_COLLECTIONS.get(account_type)
    if not name:
        raise HTTPException(
            status_code=400,
            detail="User type must be buyer, seller, or admin",
        )
    return db[name]
