"""
Tests for bearer token verification and client identity resolution.
"""
import asyncio
from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import JWTError, jwt

from coach.client.auth import resolve_identity
from coach.client.storage import ClientIdentity
from coach.core import config
from coach.core.auth_dependency import get_current_user
from coach.core.security import create_access_token, decode_access_token


@pytest.fixture(autouse=True)
def auth_config(monkeypatch):
    monkeypatch.setattr(config, "AUTH_JWT_SECRET", "test-secret")
    monkeypatch.setattr(config, "AUTH_JWT_ALGORITHM", "HS256")
    monkeypatch.setattr(config, "AUTH_JWT_PUBLIC_KEY", None)
    monkeypatch.setattr(config, "AUTH_JWT_AUDIENCE", None)
    monkeypatch.setattr(config, "AUTH_JWT_ISSUER", None)


def bearer(token):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_token_round_trip():
    token = create_access_token({"sub": "user-1", "email": "a@example.com"})
    claims = decode_access_token(token)
    assert claims["sub"] == "user-1"


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-10))
    with pytest.raises(JWTError):
        decode_access_token(token)


def test_audience_and_issuer_are_checked(monkeypatch):
    monkeypatch.setattr(config, "AUTH_JWT_AUDIENCE", "interview-coach")
    monkeypatch.setattr(config, "AUTH_JWT_ISSUER", "https://issuer.example.com")
    token = create_access_token({"sub": "user-1"})
    assert decode_access_token(token)["aud"] == "interview-coach"

    foreign = jwt.encode({"sub": "user-1", "aud": "other-app", "iss": "https://issuer.example.com"},
                         "test-secret", algorithm="HS256")
    with pytest.raises(JWTError):
        decode_access_token(foreign)


def test_no_verification_key_configured(monkeypatch):
    token = create_access_token({"sub": "user-1"})
    monkeypatch.setattr(config, "AUTH_JWT_SECRET", None)
    with pytest.raises(JWTError):
        decode_access_token(token)


def test_get_current_user_returns_identity():
    token = create_access_token({"sub": "user-1", "email": "a@example.com"})
    user = get_current_user(bearer(token))
    assert user.uid == "user-1"
    assert user.email == "a@example.com"


def test_get_current_user_without_credentials():
    with pytest.raises(HTTPException) as exc:
        get_current_user(None)
    assert exc.value.status_code == 401
    assert exc.value.headers["WWW-Authenticate"] == "Bearer"


def test_get_current_user_requires_subject():
    token = create_access_token({"email": "a@example.com"})
    with pytest.raises(HTTPException) as exc:
        get_current_user(bearer(token))
    assert exc.value.status_code == 401


def test_resolve_identity_returns_signed_in_user():
    async def get_token():
        return "token"

    async def sign_in():
        return ClientIdentity(uid="user-1", get_token=get_token)

    identity = asyncio.run(resolve_identity(sign_in, timeout=1))
    assert identity.uid == "user-1"


def test_resolve_identity_times_out_to_guest():
    """A provider that never answers leaves the client in guest mode."""
    async def sign_in():
        await asyncio.sleep(10)

    assert asyncio.run(resolve_identity(sign_in, timeout=0.05)) is None
