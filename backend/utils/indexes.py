from pymongo import ASCENDING, DESCENDING
from pymongo.errors import OperationFailure

from config.constants import ACCOUNT_COLLECTIONS


def _normalize_key_pairs(keys):
    return [(k, v) for k, v in keys]


async def _create_index_safe(collection, keys, **kwargs):
    """
    Create index safely.
    If Mongo reports IndexOptionsConflict/IndexKeySpecsConflict for same key pattern,
    drop the conflicting index and recreate with desired options.
    """
    desired_key = _normalize_key_pairs(keys)
    desired_name = kwargs.get("name")
    try:
        await collection.create_index(keys, **kwargs)
        return
    except OperationFailure as e:
        if getattr(e, "code", None) not in {85, 86}:
            raise

        conflicting_names = []
        async for idx in collection.list_indexes():
            idx_key = _normalize_key_pairs(list(idx.get("key", {}).items()))
            if idx_key == desired_key:
                idx_name = idx.get("name")
                if idx_name and idx_name != desired_name:
                    conflicting_names.append(idx_name)

        for idx_name in conflicting_names:
            await collection.drop_index(idx_name)

        await collection.create_index(keys, **kwargs)


async def _ensure_account_indexes(collection, prefix: str):
    await _create_index_safe(
        collection,
        [("email", ASCENDING)],
        name=f"{prefix}_email_unique_idx",
        unique=True,
    )
    await _create_index_safe(
        collection,
        [("email_verification_token_hash", ASCENDING)],
        name=f"{prefix}_email_token_idx",
        sparse=True,
    )
    await _create_index_safe(
        collection,
        [("password_reset_token_hash", ASCENDING)],
        name=f"{prefix}_reset_token_idx",
        sparse=True,
    )


async def ensure_indexes(db):
    # Accounts
    for collection_name in ACCOUNT_COLLECTIONS.values():
        await _ensure_account_indexes(db[collection_name], collection_name)

    await _create_index_safe(
        db.users,
        [("phone", ASCENDING)],
        name="users_phone_idx",
        sparse=True,
    )

    # Sellers
    await _create_index_safe(
        db.sellers,
        [("phone", ASCENDING)],
        name="sellers_phone_idx",
        sparse=True,
    )
    await _create_index_safe(
        db.sellers,
        [("state.status", ASCENDING), ("is_active", ASCENDING)],
        name="sellers_state_active_idx",
    )
    await _create_index_safe(
        db.sellers,
        [("business_name", ASCENDING)],
        name="sellers_business_name_idx",
    )
    await _create_index_safe(
        db.sellers,
        [("total_sales", DESCENDING), ("rating", DESCENDING)],
        name="sellers_top_idx",
    )
    await _create_index_safe(
        db.sellers,
        [("business_registration_number", ASCENDING)],
        name="sellers_registration_number_idx",
        sparse=True,
    )

    # Rate limits
    await _create_index_safe(
        db.rate_limits,
        [("key", ASCENDING)],
        name="rate_limits_key_unique",
        unique=True,
    )

    # Audit
    await _create_index_safe(
        db.audit_logs,
        [("created_at", DESCENDING)],
        name="audit_logs_created_at_idx",
    )
    await _create_index_safe(
        db.audit_logs,
        [("actor_id", ASCENDING), ("created_at", DESCENDING)],
        name="audit_logs_actor_created_at_idx",
    )
