"""
Hashing gate and lockout counter tests
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError
from bson import ObjectId

from config.constants import LOCK_DURATION, MAX_LOGIN_ATTEMPTS
from models.account import AccountType, CredentialRecord
from utils import credentials
from utils.credentials import (
    hash_on_save,
    increment_login_attempts,
    is_locked,
    reset_login_attempts,
    save_account,
    set_password,
)
from utils.hash import verify_password

from conftest import PASSWORD, account_document


class TestHashingGate:
    @pytest.mark.asyncio
    async def test_hashes_modified_password(self):
        doc = await hash_on_save({"password": PASSWORD}, {"password"})
        assert doc["password"] != PASSWORD
        assert verify_password(PASSWORD, doc["password"])
        assert isinstance(doc["password_changed_at"], datetime)

    @pytest.mark.asyncio
    async def test_unmodified_password_is_left_alone(self):
        stored = "$2b$12$" + "x" * 53
        doc = {"_id": ObjectId(), "password": stored, "email": "a@example.com"}
        result = await hash_on_save(doc, {"email"})
        assert result is doc
        assert result["password"] == stored

    @pytest.mark.asyncio
    async def test_missing_password_rejected(self):
        with pytest.raises(ValueError):
            await hash_on_save({"password": ""}, {"password"})

    @pytest.mark.asyncio
    async def test_insert_never_stores_plaintext(self, db):
        doc = account_document(AccountType.BUYER, "buyer@example.com")
        account = await save_account(db.users, doc, doc.keys())

        stored = await db.users.find_one({"_id": account["_id"]})
        assert stored["password"] != PASSWORD
        assert stored["password"].startswith("$2b$12$")
        assert doc["password"] == PASSWORD  # caller's dict untouched

        # stored shape matches the credential record model
        CredentialRecord(**stored)

    @pytest.mark.asyncio
    async def test_insert_rejects_incomplete_record(self, db):
        doc = account_document(AccountType.BUYER, "buyer@example.com")
        del doc["state"]

        with pytest.raises(ValidationError):
            await save_account(db.users, doc, doc.keys())

        assert await db.users.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_insert_without_marking_password_is_refused(self, db):
        doc = account_document(AccountType.BUYER, "buyer@example.com")
        fields = set(doc.keys()) - {"password"}

        with pytest.raises(ValidationError):
            await save_account(db.users, doc, fields)

        assert await db.users.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_update_without_password_does_not_rehash(self, db):
        doc = account_document(AccountType.BUYER, "buyer@example.com")
        account = await save_account(db.users, doc, doc.keys())
        original_hash = (await db.users.find_one({"_id": account["_id"]}))["password"]

        await save_account(db.users, {"_id": account["_id"], "email": "new@example.com"}, {"email"})

        stored = await db.users.find_one({"_id": account["_id"]})
        assert stored["email"] == "new@example.com"
        assert stored["password"] == original_hash

    @pytest.mark.asyncio
    async def test_hash_failure_aborts_write(self, db, monkeypatch):
        def boom(_):
            raise RuntimeError("hashing backend unavailable")

        monkeypatch.setattr(credentials, "hash_password", boom)
        doc = account_document(AccountType.BUYER, "buyer@example.com")

        with pytest.raises(RuntimeError):
            await save_account(db.users, doc, doc.keys())

        assert await db.users.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_set_password_replaces_hash(self, db):
        doc = account_document(AccountType.SELLER, "seller@example.com")
        account = await save_account(db.sellers, doc, doc.keys())

        await set_password(db.sellers, account["_id"], "NewPassword1!")

        stored = await db.sellers.find_one({"_id": account["_id"]})
        assert verify_password("NewPassword1!", stored["password"])
        assert not verify_password(PASSWORD, stored["password"])


class TestLockout:
    def test_is_locked(self):
        now = datetime.utcnow()
        assert is_locked({"lock_until": now + timedelta(minutes=1)}, now)
        assert not is_locked({"lock_until": now - timedelta(minutes=1)}, now)
        assert not is_locked({}, now)

    @pytest.mark.asyncio
    async def test_increment_uses_atomic_inc(self):
        account_id = ObjectId()
        collection = AsyncMock()
        collection.find_one_and_update.return_value = {"_id": account_id, "login_attempts": 2}

        result = await increment_login_attempts(collection, {"_id": account_id, "login_attempts": 1})

        assert result["login_attempts"] == 2
        collection.find_one_and_update.assert_awaited_once()
        query, update = collection.find_one_and_update.await_args.args
        assert query == {"_id": account_id}
        assert update["$inc"] == {"login_attempts": 1}
        assert "login_attempts" not in update["$set"]

    @pytest.mark.asyncio
    async def test_locks_on_fifth_failure(self, db):
        doc = account_document(AccountType.SELLER, "seller@example.com")
        account = await save_account(db.sellers, doc, doc.keys())
        now = datetime.utcnow()

        for attempt in range(1, MAX_LOGIN_ATTEMPTS):
            updated = await increment_login_attempts(db.sellers, account, now)
            assert updated["login_attempts"] == attempt
            assert not is_locked(updated, now)
            account = updated

        locked = await increment_login_attempts(db.sellers, account, now)
        assert locked["login_attempts"] == MAX_LOGIN_ATTEMPTS
        assert is_locked(locked, now)
        assert abs(locked["lock_until"] - (now + LOCK_DURATION)) < timedelta(seconds=1)
        assert "password" not in locked

    @pytest.mark.asyncio
    async def test_failures_while_locked_do_not_extend_lock(self, db):
        now = datetime.utcnow()
        lock_until = now + timedelta(minutes=30)
        doc = account_document(
            AccountType.BUYER,
            "buyer@example.com",
            login_attempts=MAX_LOGIN_ATTEMPTS,
            lock_until=lock_until,
        )
        account = await save_account(db.users, doc, doc.keys())

        updated = await increment_login_attempts(db.users, account, now)

        assert updated["login_attempts"] == MAX_LOGIN_ATTEMPTS + 1
        assert abs(updated["lock_until"] - lock_until) < timedelta(milliseconds=5)

    @pytest.mark.asyncio
    async def test_expired_lock_restarts_count(self, db):
        now = datetime.utcnow()
        doc = account_document(
            AccountType.BUYER,
            "buyer@example.com",
            login_attempts=MAX_LOGIN_ATTEMPTS,
            lock_until=now - timedelta(seconds=1),
        )
        account = await save_account(db.users, doc, doc.keys())

        updated = await increment_login_attempts(db.users, account, now)

        assert updated["login_attempts"] == 1
        assert "lock_until" not in updated

    @pytest.mark.asyncio
    async def test_reset_clears_counter_and_lock(self, db):
        now = datetime.utcnow()
        doc = account_document(
            AccountType.BUYER,
            "buyer@example.com",
            login_attempts=3,
            lock_until=now + timedelta(hours=1),
        )
        account = await save_account(db.users, doc, doc.keys())

        await reset_login_attempts(db.users, account["_id"])

        stored = await db.users.find_one({"_id": account["_id"]})
        assert stored["login_attempts"] == 0
        assert "lock_until" not in stored
