"""
Natours Backend — Authentication Tests
=======================================

What we test:
    ✅ Signup returns a token, the user, and an http-only jwt cookie
    ✅ Login with good/bad/missing credentials
    ✅ Logout overwrites the cookie
    ✅ protect: missing token, cookie token, deleted user, changed password
    ✅ restrict_to: wrong role → 403
    ✅ Password change and profile update for the current user
    ✅ deleteMe deactivates the account
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from natours.models import User
from natours.services.auth_service import COOKIE_NAME, decode_token, sign_token
from tests.conftest import PASSWORD


def signup_body(**overrides):
    body = {
        "name": "Jonas Schmedtmann",
        "email": "jonas@natours.io",
        "password": PASSWORD,
        "passwordConfirm": PASSWORD,
    }
    body.update(overrides)
    return body


class TestTokens:
    def test_sign_and_decode(self, settings):
        token = sign_token("abc", settings)
        claims = decode_token(token, settings)
        assert claims["id"] == "abc"
        assert claims["exp"] > claims["iat"]


class TestSignup:
    @pytest.mark.asyncio
    async def test_signup_creates_user(self, client):
        response = await client.post("/api/v1/users/signup", json=signup_body())
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "success"
        assert body["token"]
        user = body["data"]["user"]
        assert user["email"] == "jonas@natours.io"
        assert user["role"] == "user"
        assert "password" not in user and "passwordHash" not in user

    @pytest.mark.asyncio
    async def test_signup_sets_cookie(self, client):
        response = await client.post("/api/v1/users/signup", json=signup_body())
        cookie = response.headers["set-cookie"]
        assert cookie.startswith(f"{COOKIE_NAME}=")
        assert "HttpOnly" in cookie

    @pytest.mark.asyncio
    async def test_signup_cannot_choose_role(self, client):
        response = await client.post("/api/v1/users/signup", json=signup_body(role="admin"))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_password_confirmation_must_match(self, client):
        response = await client.post(
            "/api/v1/users/signup", json=signup_body(passwordConfirm="different1")
        )
        assert response.status_code == 400
        assert "Passwords are not the same!" in response.json()["message"]


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_success(self, client, make_user):
        await make_user(email="login@natours.io")
        response = await client.post(
            "/api/v1/users/login", json={"email": "login@natours.io", "password": PASSWORD}
        )
        assert response.status_code == 200
        assert response.json()["token"]

    @pytest.mark.asyncio
    async def test_login_form_encoded(self, client, make_user):
        await make_user(email="form@natours.io")
        response = await client.post(
            "/api/v1/users/login", data={"email": "form@natours.io", "password": PASSWORD}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, make_user):
        await make_user(email="wrong@natours.io")
        response = await client.post(
            "/api/v1/users/login", json={"email": "wrong@natours.io", "password": "nope12345"}
        )
        assert response.status_code == 401
        assert response.json()["message"] == "Incorrect email or password"

    @pytest.mark.asyncio
    async def test_missing_credentials(self, client):
        response = await client.post("/api/v1/users/login", json={"email": "a@natours.io"})
        assert response.status_code == 400
        assert response.json()["message"] == "Please provide email and password!"

    @pytest.mark.asyncio
    async def test_operator_injection_does_not_log_in(self, client, make_user):
        """`{"$gt": ""}` is stripped to an empty object and fails validation."""
        await make_user(email="victim@natours.io")
        response = await client.post(
            "/api/v1/users/login", json={"email": {"$gt": ""}, "password": PASSWORD}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_deactivated_user_cannot_log_in(self, client, make_user):
        await make_user(email="gone@natours.io", active=False)
        response = await client.post(
            "/api/v1/users/login", json={"email": "gone@natours.io", "password": PASSWORD}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_logout(self, client):
        response = await client.get("/api/v1/users/logout")
        assert response.status_code == 200
        assert response.headers["set-cookie"].startswith(f"{COOKIE_NAME}=loggedout")


class TestProtect:
    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/v1/users/me")
        assert response.status_code == 401
        assert response.json()["message"] == (
            "You are not logged in! Please log in to get access."
        )

    @pytest.mark.asyncio
    async def test_bearer_token(self, client, make_user, auth_headers):
        user = await make_user(name="Bearer User")
        response = await client.get("/api/v1/users/me", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json()["data"]["data"]["name"] == "Bearer User"

    @pytest.mark.asyncio
    async def test_cookie_token(self, client, make_user, settings):
        user = await make_user()
        token = sign_token(user.id, settings)
        response = await client.get(
            "/api/v1/users/me", headers={"cookie": f"{COOKIE_NAME}={token}"}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_user_no_longer_exists(self, client, make_user, auth_headers):
        user = await make_user(active=False)
        response = await client.get("/api/v1/users/me", headers=auth_headers(user))
        assert response.status_code == 401
        assert response.json()["message"] == (
            "The user belonging to this token does no longer exist."
        )

    @pytest.mark.asyncio
    async def test_token_issued_after_change_is_accepted(self, client, make_user, auth_headers):
        user = await make_user()
        headers = auth_headers(user)

        changed = await client.patch(
            "/api/v1/users/updateMyPassword",
            json={
                "passwordCurrent": PASSWORD,
                "password": "newpass1234",
                "passwordConfirm": "newpass1234",
            },
            headers=headers,
        )
        assert changed.status_code == 200
        fresh_token = changed.json()["token"]

        response = await client.get(
            "/api/v1/users/me", headers={"Authorization": f"Bearer {fresh_token}"}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_stale_token_rejected(self, client, database, make_user, settings):
        """A token issued before the latest password change is refused."""
        user = await make_user()
        async with database.session() as session:
            stored = await session.get(User, user.id)
            stored.password_changed_at = datetime.now(timezone.utc)
            await session.commit()

        issued = datetime.now(timezone.utc) - timedelta(hours=1)
        token = jwt.encode(
            {
                "id": str(user.id),
                "iat": int(issued.timestamp()),
                "exp": int((issued + timedelta(days=1)).timestamp()),
            },
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        response = await client.get(
            "/api/v1/users/me", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401
        assert response.json()["message"] == (
            "User recently changed password! Please log in again."
        )

    @pytest.mark.asyncio
    async def test_wrong_current_password(self, client, make_user, auth_headers):
        user = await make_user()
        response = await client.patch(
            "/api/v1/users/updateMyPassword",
            json={
                "passwordCurrent": "not-the-password",
                "password": "newpass1234",
                "passwordConfirm": "newpass1234",
            },
            headers=auth_headers(user),
        )
        assert response.status_code == 401
        assert response.json()["message"] == "Your current password is wrong."


class TestRestrictTo:
    @pytest.mark.asyncio
    async def test_user_cannot_list_users(self, client, make_user, auth_headers):
        user = await make_user()
        response = await client.get("/api/v1/users", headers=auth_headers(user))
        assert response.status_code == 403
        assert response.json()["message"] == (
            "You do not have permission to perform this action"
        )

    @pytest.mark.asyncio
    async def test_admin_lists_active_users(self, client, make_user, auth_headers):
        admin = await make_user(role="admin", name="Admin")
        await make_user(name="Active")
        await make_user(name="Inactive", active=False)
        response = await client.get("/api/v1/users", headers=auth_headers(admin))
        assert response.status_code == 200
        names = [u["name"] for u in response.json()["data"]["data"]]
        assert names == ["Active", "Admin"]

    @pytest.mark.asyncio
    async def test_admin_updates_role(self, client, make_user, auth_headers):
        admin = await make_user(role="admin")
        target = await make_user()
        response = await client.patch(
            f"/api/v1/users/{target.id}", json={"role": "guide"}, headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["data"]["data"]["role"] == "guide"


class TestCurrentUser:
    @pytest.mark.asyncio
    async def test_update_me(self, client, make_user, auth_headers):
        user = await make_user()
        response = await client.patch(
            "/api/v1/users/updateMe",
            json={"name": "New Name", "email": "NEW@natours.io"},
            headers=auth_headers(user),
        )
        assert response.status_code == 200
        data = response.json()["data"]["data"]
        assert data["name"] == "New Name"
        assert data["email"] == "new@natours.io"

    @pytest.mark.asyncio
    async def test_update_me_rejects_password(self, client, make_user, auth_headers):
        user = await make_user()
        response = await client.patch(
            "/api/v1/users/updateMe", json={"password": "x"}, headers=auth_headers(user)
        )
        assert response.status_code == 400
        assert response.json()["message"] == (
            "This route is not for password updates. Please use /updateMyPassword."
        )

    @pytest.mark.asyncio
    async def test_update_me_rejects_role(self, client, make_user, auth_headers):
        user = await make_user()
        response = await client.patch(
            "/api/v1/users/updateMe", json={"role": "admin"}, headers=auth_headers(user)
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_delete_me(self, client, make_user, auth_headers):
        user = await make_user(email="leaving@natours.io")
        headers = auth_headers(user)
        response = await client.delete("/api/v1/users/deleteMe", headers=headers)
        assert response.status_code == 204

        again = await client.get("/api/v1/users/me", headers=headers)
        assert again.status_code == 401
