"""
Pytest configuration for the marketplace accounts tests
"""

import os

os.environ["ENV"] = "test"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["BANK_DATA_ENCRYPTION_KEY"] = "test-bank-data-key"
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)

import asyncio
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from models.account import AccountType, initial_state
from utils.credentials import save_account
from utils.jwt import create_access_token

PASSWORD = "Password123!"


def account_document(account_type: AccountType, email: str, password: str = PASSWORD, **extra) -> dict:
    now = datetime.utcnow()
    doc = {
        "email": email,
        "password": password,
        "login_attempts": 0,
        "state": initial_state(account_type, now),
        "is_active": True,
        "is_email_verified": False,
        "last_login_at": None,
        "created_at": now,
    }
    doc.update(extra)
    return doc


@pytest.fixture
def db():
    """In-memory Motor database"""
    return AsyncMongoMockClient()["marketplace_test"]


@pytest.fixture
def client(db):
    """Test client with the database dependency pointed at the mock"""
    from main import app
    from database import get_db

    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def create_account(db):
    """Insert an account through the hashing gate (sync, for route tests)"""
    def _create(account_type: AccountType, email: str, password: str = PASSWORD, **extra) -> dict:
        collection = db[{"buyer": "users", "seller": "sellers", "admin": "admins"}[account_type.value]]
        doc = account_document(account_type, email, password, **extra)
        return asyncio.run(save_account(collection, doc, doc.keys()))

    return _create


@pytest.fixture
def admin_headers(create_account):
    admin = create_account(AccountType.ADMIN, "admin@example.com")
    token = create_access_token(str(admin["_id"]), "admin")
    return {"Authorization": f"Bearer {token}"}


def auth_headers(account: dict, account_type: str, issued_at: datetime | None = None) -> dict:
    token = create_access_token(str(account["_id"]), account_type, issued_at)
    return {"Authorization": f"Bearer {token}"}
