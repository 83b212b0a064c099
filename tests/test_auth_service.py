"""Tests for JWT creation/verification and the shop-scope dependency."""

from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import HTTPException
from jose import JWTError, jwt

from shelfwise.config import Settings
from shelfwise.services.auth_service import create_access_token, get_current_shop, verify_token


@pytest.fixture
def settings() -> Settings:
    return Settings(JWT_SECRET="unit-test-secret", JWT_ALGORITHM="HS256", JWT_ACCESS_TOKEN_EXPIRE_MINUTES=5)


class TestTokens:
    def test_create_and_verify(self, settings):
        token = create_access_token({"sub": "u1", "shop_id": "shop-1"}, settings=settings)
        payload = verify_token(token, settings=settings)

        assert payload["sub"] == "u1"
        assert payload["shop_id"] == "shop-1"
        assert payload["type"] == "access"
        assert "exp" in payload

    def test_wrong_secret_rejected(self, settings):
        token = create_access_token({"sub": "u1"}, settings=settings)
        other = Settings(JWT_SECRET="another-secret")

        with pytest.raises(JWTError):
            verify_token(token, settings=other)

    def test_expired_token_rejected(self, settings):
        token = create_access_token({"sub": "u1"}, expires_delta=timedelta(seconds=-5), settings=settings)

        with pytest.raises(JWTError):
            verify_token(token, settings=settings)


class TestGetCurrentShop:
    @pytest.mark.asyncio
    async def test_returns_user_and_shop(self):
        token = create_access_token({"sub": "u1", "shop_id": "shop-7"})

        assert await get_current_shop(token) == {"user_id": "u1", "shop_id": "shop-7"}

    @pytest.mark.asyncio
    async def test_token_without_shop_rejected(self):
        token = create_access_token({"sub": "u1"})

        with pytest.raises(HTTPException) as exc_info:
            await get_current_shop(token)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_non_access_token_rejected(self):
        from shelfwise.config import get_settings

        settings = get_settings()
        token = jwt.encode(
            {"sub": "u1", "shop_id": "shop-1", "type": "refresh"},
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
        )

        with pytest.raises(HTTPException) as exc_info:
            await get_current_shop(token)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_garbage_token_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_shop("not.a.jwt")
        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}
