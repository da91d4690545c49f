"""
API tests for authentication and profile endpoints.
"""

import pytest
from sqlalchemy import select

from models import User
from tests.factories import auth_headers


class TestRegisterAndVerify:
    @pytest.mark.asyncio
    async def test_register_then_verify_then_login(self, client, test_db):
        response = await client.post(
            "/api/auth/register",
            json={"email": "Nora@Example.com", "password": "secret123", "full_name": "Nora N"},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["user"]["email"] == "nora@example.com"
        assert data["user"]["email_verified"] is False
        assert data["requires_verification"] is True
        assert "/verify-email?token=" in data["email_preview"]

        login = await client.post(
            "/api/auth/login", json={"email": "nora@example.com", "password": "secret123"}
        )
        assert login.status_code == 403
        assert login.json()["details"]["email_not_verified"] is True

        token = data["email_preview"].split("token=")[1]
        verified = await client.post("/api/auth/verify-email", json={"token": token})
        assert verified.status_code == 200
        assert verified.json()["data"]["access_token"]

        login = await client.post(
            "/api/auth/login", json={"email": "nora@example.com", "password": "secret123"}
        )
        assert login.status_code == 200
        assert login.json()["data"]["token_type"] == "bearer"

    @pytest.mark.asyncio
    async def test_duplicate_registration(self, client, owner):
        response = await client.post(
            "/api/auth/register",
            json={"email": owner.email, "password": "secret123", "full_name": "Copy Cat"},
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "EMAIL_ALREADY_REGISTERED"

    @pytest.mark.asyncio
    async def test_short_password_is_a_validation_error(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"email": "short@example.com", "password": "123", "full_name": "Shorty"},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["status"] == "error"
        assert body["error_code"] == "VALIDATION_ERROR"
        assert body["details"][0]["loc"] == ["body", "password"]

    @pytest.mark.asyncio
    async def test_bad_verification_token(self, client):
        response = await client.post("/api/auth/verify-email", json={"token": "nope"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_TOKEN"


class TestLoginAndMe:
    @pytest.mark.asyncio
    async def test_login_returns_working_token(self, client, owner):
        login = await client.post(
            "/api/auth/login", json={"email": owner.email, "password": "password123"}
        )
        token = login.json()["data"]["access_token"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert me.status_code == 200
        assert me.json()["email"] == owner.email
        assert me.json()["full_name"] == "Olivia Owner"

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, owner):
        response = await client.post(
            "/api/auth/login", json={"email": owner.email, "password": "wrong-one"}
        )

        assert response.status_code == 401
        assert response.json()["error_code"] == "INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["message"] == "Authentication token is required"

    @pytest.mark.asyncio
    async def test_garbage_token(self, client):
        response = await client.get(
            "/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTHENTICATION_FAILED"


class TestPasswordReset:
    @pytest.mark.asyncio
    async def test_same_answer_for_known_and_unknown_emails(self, client, owner):
        known = await client.post("/api/auth/request-password-reset", json={"email": owner.email})
        unknown = await client.post(
            "/api/auth/request-password-reset", json={"email": "ghost@example.com"}
        )

        assert known.status_code == unknown.status_code == 200
        assert known.json()["message"] == unknown.json()["message"]

    @pytest.mark.asyncio
    async def test_reset_with_token(self, client, test_db, owner):
        await client.post("/api/auth/request-password-reset", json={"email": owner.email})
        token = await test_db.scalar(
            select(User.password_reset_token).where(User.id == owner.id)
        )

        response = await client.post(
            "/api/auth/reset-password", json={"token": token, "password": "fresh-pass"}
        )

        assert response.status_code == 200
        login = await client.post(
            "/api/auth/login", json={"email": owner.email, "password": "fresh-pass"}
        )
        assert login.status_code == 200


class TestProfile:
    @pytest.mark.asyncio
    async def test_get_and_update_profile(self, authenticated_client):
        profile = await authenticated_client.get("/api/profile")
        assert profile.json()["data"]["full_name"] == "Olivia Owner"

        name = await authenticated_client.put("/api/profile/name", json={"full_name": "Liv"})
        username = await authenticated_client.put(
            "/api/profile/username", json={"username": "liv_owner"}
        )
        avatar = await authenticated_client.put(
            "/api/profile/avatar", json={"avatar_url": "https://cdn.example.com/liv.png"}
        )

        assert name.json()["data"]["full_name"] == "Liv"
        assert username.json()["data"]["username"] == "liv_owner"
        assert avatar.json()["data"]["avatar_url"] == "https://cdn.example.com/liv.png"

    @pytest.mark.asyncio
    async def test_invalid_username(self, authenticated_client):
        response = await authenticated_client.put(
            "/api/profile/username", json={"username": "no spaces!"}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_taken_username(self, client, owner, member_user):
        await client.put(
            "/api/profile/username", json={"username": "taken"}, headers=auth_headers(owner)
        )

        response = await client.put(
            "/api/profile/username", json={"username": "taken"}, headers=auth_headers(member_user)
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "USERNAME_TAKEN"

    @pytest.mark.asyncio
    async def test_change_password(self, authenticated_client):
        wrong = await authenticated_client.put(
            "/api/profile/password",
            json={"current_password": "nope", "new_password": "another-pass"},
        )
        right = await authenticated_client.put(
            "/api/profile/password",
            json={"current_password": "password123", "new_password": "another-pass"},
        )

        assert wrong.status_code == 400
        assert wrong.json()["error_code"] == "INVALID_PASSWORD"
        assert right.status_code == 200

    @pytest.mark.asyncio
    async def test_delete_account(self, client, test_db, member_user):
        headers = auth_headers(member_user)
        member_id = member_user.id

        response = await client.delete("/api/profile", headers=headers)

        assert response.status_code == 200
        assert await test_db.scalar(select(User.id).where(User.id == member_id)) is None
        again = await client.get("/api/auth/me", headers=headers)
        assert again.status_code == 401
