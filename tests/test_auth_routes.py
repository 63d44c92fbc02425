"""
Auth API tests
"""

import asyncio
from datetime import datetime, timedelta

from models.account import AccountType
from utils.account_state import set_active, transition_state
from utils.hash import verify_password
from utils.jwt import create_refresh_token

from conftest import PASSWORD, auth_headers

BUYER = {
    "first_name": "Mwila",
    "last_name": "Phiri",
    "email": "Buyer@Example.com",
    "password": PASSWORD,
    "phone": "+260 977 000111",
}

SELLER = {
    "first_name": "Ada",
    "last_name": "Banda",
    "email": "seller@example.com",
    "password": PASSWORD,
    "phone": "+260 966 000222",
    "business_name": "Banda Crafts",
    "business_type": "individual",
    "tax_number": "TPIN-1001",
}


def _login(client, email, password, user_type="buyer"):
    return client.post("/api/auth/login", json={
        "email": email,
        "password": password,
        "user_type": user_type,
    })


class TestRegistration:
    def test_register_buyer(self, client, db):
        response = client.post("/api/auth/register/buyer", json=BUYER)
        assert response.status_code == 201
        data = response.json()

        assert data["access_token"]
        assert data["refresh_token"]
        assert data["email_verification_token"]
        user = data["user"]
        assert user["email"] == "buyer@example.com"
        assert user["user_type"] == "buyer"
        assert "password" not in user
        assert user["login_attempts"] == 0
        assert user["is_verified"] is True

        stored = asyncio.run(db.users.find_one({"email": "buyer@example.com"}))
        assert stored["password"] != PASSWORD
        assert stored["password"].startswith("$2b$12$")
        assert verify_password(PASSWORD, stored["password"])
        assert "email_verification_token_hash" in stored

    def test_register_seller_starts_pending(self, client):
        response = client.post("/api/auth/register/seller", json=SELLER)
        assert response.status_code == 201
        user = response.json()["user"]

        assert user["verification_status"] == "pending"
        assert user["is_verified"] is False
        assert user["status"] == "pending"
        assert user["commission"] == 5
        assert user["business_address"]["country"] == "Zambia"

    def test_duplicate_email(self, client):
        assert client.post("/api/auth/register/buyer", json=BUYER).status_code == 201

        response = client.post("/api/auth/register/buyer", json={**BUYER, "phone": None})
        assert response.status_code == 409
        assert response.json()["detail"]["field"] == "email"

    def test_duplicate_tax_number(self, client):
        assert client.post("/api/auth/register/seller", json=SELLER).status_code == 201

        response = client.post("/api/auth/register/seller", json={
            **SELLER,
            "email": "other@example.com",
            "phone": None,
        })
        assert response.status_code == 409
        assert response.json()["detail"]["field"] == "tax_number"

    def test_weak_password_rejected(self, client):
        response = client.post("/api/auth/register/buyer", json={**BUYER, "password": "password"})
        assert response.status_code == 422

    def test_invalid_phone_rejected(self, client):
        response = client.post("/api/auth/register/buyer", json={**BUYER, "phone": "call me"})
        assert response.status_code == 422


class TestLogin:
    def test_login_and_me(self, client):
        client.post("/api/auth/register/buyer", json=BUYER)

        response = _login(client, "buyer@example.com", PASSWORD)
        assert response.status_code == 200
        token = response.json()["access_token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["user"]["email"] == "buyer@example.com"

    def test_unknown_email(self, client):
        response = _login(client, "nobody@example.com", PASSWORD)
        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "Invalid credentials"

    def test_wrong_account_type(self, client):
        client.post("/api/auth/register/seller", json=SELLER)
        assert _login(client, "seller@example.com", PASSWORD, "buyer").status_code == 401
        assert _login(client, "seller@example.com", PASSWORD, "seller").status_code == 200

    def test_password_is_case_sensitive(self, client):
        client.post("/api/auth/register/buyer", json=BUYER)

        response = _login(client, "buyer@example.com", "password123!")
        assert response.status_code == 401
        assert response.json()["detail"]["attempts_remaining"] == 4

    def test_lockout_rejects_correct_password(self, client, db):
        client.post("/api/auth/register/buyer", json=BUYER)

        codes = [_login(client, "buyer@example.com", "Wrong123!").status_code for _ in range(5)]
        assert codes == [401, 401, 401, 401, 423]

        response = _login(client, "buyer@example.com", PASSWORD)
        assert response.status_code == 423
        assert response.json()["detail"]["lock_until"]

        audit = asyncio.run(db.audit_logs.find_one({"action": "ACCOUNT_LOCKED"}))
        assert audit is not None

    def test_deactivated_account(self, client, db):
        client.post("/api/auth/register/buyer", json=BUYER)
        stored = asyncio.run(db.users.find_one({"email": "buyer@example.com"}))
        asyncio.run(set_active(db.users, stored["_id"], False))

        response = _login(client, "buyer@example.com", PASSWORD)
        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "Account deactivated"

        me = client.get("/api/auth/me", headers=auth_headers(stored, "buyer"))
        assert me.status_code == 403

    def test_me_requires_token(self, client):
        assert client.get("/api/auth/me").status_code in (401, 403)
        bad = client.get("/api/auth/me", headers={"Authorization": "Bearer nonsense"})
        assert bad.status_code == 401


class TestTokens:
    def test_refresh(self, client):
        tokens = client.post("/api/auth/register/buyer", json=BUYER).json()

        response = client.post("/api/auth/refresh-token", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200
        assert response.json()["access_token"]

    def test_access_token_is_not_a_refresh_token(self, client):
        tokens = client.post("/api/auth/register/buyer", json=BUYER).json()

        response = client.post("/api/auth/refresh-token", json={"refresh_token": tokens["access_token"]})
        assert response.status_code == 401

    def test_verify_email_once(self, client):
        token = client.post("/api/auth/register/seller", json=SELLER).json()["email_verification_token"]

        payload = {"token": token, "user_type": "seller"}
        first = client.post("/api/auth/verify-email", json=payload)
        assert first.status_code == 200
        assert first.json()["user"]["is_email_verified"] is True

        assert client.post("/api/auth/verify-email", json=payload).status_code == 400


class TestPasswordReset:
    def test_forgot_password_does_not_reveal_accounts(self, client):
        client.post("/api/auth/register/buyer", json=BUYER)

        known = client.post("/api/auth/forgot-password", json={"email": "buyer@example.com", "user_type": "buyer"})
        unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com", "user_type": "buyer"})

        assert known.status_code == unknown.status_code == 200
        assert known.json()["message"] == unknown.json()["message"]
        assert "reset_token" not in unknown.json()

    def test_reset_password_unlocks_and_replaces_password(self, client):
        client.post("/api/auth/register/buyer", json=BUYER)
        for _ in range(5):
            _login(client, "buyer@example.com", "Wrong123!")
        assert _login(client, "buyer@example.com", PASSWORD).status_code == 423

        token = client.post(
            "/api/auth/forgot-password",
            json={"email": "buyer@example.com", "user_type": "buyer"},
        ).json()["reset_token"]

        response = client.post("/api/auth/reset-password", json={
            "token": token,
            "password": "BrandNew456$",
            "user_type": "buyer",
        })
        assert response.status_code == 200

        assert _login(client, "buyer@example.com", "BrandNew456$").status_code == 200

        reused = client.post("/api/auth/reset-password", json={
            "token": token,
            "password": "Another789!",
            "user_type": "buyer",
        })
        assert reused.status_code == 400

    def test_change_password(self, client):
        token = client.post("/api/auth/register/buyer", json=BUYER).json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        wrong = client.post("/api/auth/change-password", headers=headers, json={
            "current_password": "Nope123!",
            "new_password": "BrandNew456$",
            "confirm_password": "BrandNew456$",
        })
        assert wrong.status_code == 400

        mismatch = client.post("/api/auth/change-password", headers=headers, json={
            "current_password": PASSWORD,
            "new_password": "BrandNew456$",
            "confirm_password": "BrandNew456%",
        })
        assert mismatch.status_code == 422

        ok = client.post("/api/auth/change-password", headers=headers, json={
            "current_password": PASSWORD,
            "new_password": "BrandNew456$",
            "confirm_password": "BrandNew456$",
        })
        assert ok.status_code == 200
        assert _login(client, "buyer@example.com", PASSWORD).status_code == 401
        assert _login(client, "buyer@example.com", "BrandNew456$").status_code == 200

    def test_wrong_current_password_counts_toward_lockout(self, client, create_account, db):
        buyer = create_account(AccountType.BUYER, "buyer@example.com")
        headers = auth_headers(buyer, "buyer")
        body = {
            "current_password": "Nope123!",
            "new_password": "BrandNew456$",
            "confirm_password": "BrandNew456$",
        }

        codes = [client.post("/api/auth/change-password", headers=headers, json=body).status_code for _ in range(5)]
        assert codes == [400, 400, 400, 400, 423]

        # the correct password is refused everywhere while locked
        body["current_password"] = PASSWORD
        assert client.post("/api/auth/change-password", headers=headers, json=body).status_code == 423
        assert _login(client, "buyer@example.com", PASSWORD).status_code == 423

        entry = asyncio.run(db.audit_logs.find_one({"action": "ACCOUNT_LOCKED"}))
        assert entry["metadata"]["via"] == "change-password"


class TestSessionRevocation:
    def _buyer_with_old_session(self, create_account, db):
        buyer = create_account(AccountType.BUYER, "buyer@example.com")
        earlier = datetime.utcnow() - timedelta(minutes=10)
        asyncio.run(db.users.update_one({"_id": buyer["_id"]}, {"$set": {"password_changed_at": earlier}}))

        issued = datetime.utcnow() - timedelta(minutes=5)
        headers = auth_headers(buyer, "buyer", issued_at=issued)
        refresh = create_refresh_token(str(buyer["_id"]), "buyer", issued)
        return headers, refresh

    def test_change_password_revokes_earlier_tokens(self, client, create_account, db):
        headers, refresh = self._buyer_with_old_session(create_account, db)
        assert client.get("/api/auth/me", headers=headers).status_code == 200

        changed = client.post("/api/auth/change-password", headers=headers, json={
            "current_password": PASSWORD,
            "new_password": "BrandNew456$",
            "confirm_password": "BrandNew456$",
        })
        assert changed.status_code == 200

        assert client.get("/api/auth/me", headers=headers).status_code == 401
        assert client.post("/api/auth/refresh-token", json={"refresh_token": refresh}).status_code == 401

        fresh = {"Authorization": f"Bearer {changed.json()['access_token']}"}
        assert client.get("/api/auth/me", headers=fresh).status_code == 200

    def test_reset_password_revokes_earlier_tokens(self, client, create_account, db):
        headers, refresh = self._buyer_with_old_session(create_account, db)

        token = client.post(
            "/api/auth/forgot-password",
            json={"email": "buyer@example.com", "user_type": "buyer"},
        ).json()["reset_token"]
        reset = client.post("/api/auth/reset-password", json={
            "token": token,
            "password": "BrandNew456$",
            "user_type": "buyer",
        })
        assert reset.status_code == 200

        assert client.get("/api/auth/me", headers=headers).status_code == 401
        assert client.post("/api/auth/refresh-token", json={"refresh_token": refresh}).status_code == 401

    def test_suspended_seller_loses_session(self, client, create_account, db):
        seller = create_account(AccountType.SELLER, "seller@example.com")
        asyncio.run(transition_state(db.sellers, seller["_id"], "verified"))
        headers = auth_headers(seller, "seller")
        refresh = create_refresh_token(str(seller["_id"]), "seller")
        assert client.get("/api/sellers/me", headers=headers).status_code == 200

        asyncio.run(transition_state(db.sellers, seller["_id"], "suspended", reason="Counterfeit goods"))

        assert _login(client, "seller@example.com", PASSWORD, "seller").status_code == 403
        assert client.post("/api/auth/refresh-token", json={"refresh_token": refresh}).status_code == 401
        assert client.get("/api/sellers/me", headers=headers).status_code == 403
        assert client.put(
            "/api/sellers/me",
            headers=headers,
            json={"business_description": "Still here"},
        ).status_code == 403


class TestLogout:
    def test_logout_is_audited(self, client, create_account, db):
        buyer = create_account(AccountType.BUYER, "buyer@example.com")

        response = client.post("/api/auth/logout", headers=auth_headers(buyer, "buyer"))
        assert response.status_code == 200
        assert asyncio.run(db.audit_logs.count_documents({"action": "LOGOUT"})) == 1

    def test_logout_requires_token(self, client):
        assert client.post("/api/auth/logout").status_code in (401, 403)
