"""Session token issuance and verification."""

from datetime import timedelta

import pytest
from jose import jwt

from nexus.services.auth import (
    check_password_strength,
    create_token,
    decode_token,
    get_optional_user,
    hash_password,
    is_token_revoked,
    verify_password,
)
from nexus.services.credentials import CredentialStore
from nexus.utils.base.time import utcnow
from nexus.utils.config import settings
from nexus.utils.errors import TokenExpired, TokenInvalid


def test_round_trip_claims():
    now = utcnow()
    claims = decode_token(create_token("abc123", "1", issued_at=now))
    assert claims.user_id == "abc123"
    assert claims.issued_at == int(now.timestamp())
    assert claims.token_version == "1"


def test_token_lives_seven_days():
    now = utcnow()
    payload = jwt.get_unverified_claims(create_token("abc123", "1", issued_at=now))
    assert payload["exp"] - payload["iat"] == 7 * 24 * 3600


def test_expired_token():
    token = create_token("abc123", "1", issued_at=utcnow() - timedelta(days=8))
    with pytest.raises(TokenExpired):
        decode_token(token)


def test_tampered_token():
    token = create_token("abc123", "1")
    head, body, sig = token.split(".")
    with pytest.raises(TokenInvalid):
        decode_token(f"{head}.{body}.{sig[:-4]}AAAA")


def test_foreign_secret():
    token = jwt.encode({"sub": "abc123", "iat": 1, "exp": 9999999999, "tv": "1", "typ": "access"}, "other", algorithm="HS256")
    with pytest.raises(TokenInvalid):
        decode_token(token)


def test_missing_subject():
    now = int(utcnow().timestamp())
    token = jwt.encode(
        {"iat": now, "exp": now + 60, "tv": "1", "typ": "access"},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(TokenInvalid):
        decode_token(token)


def test_token_version_revocation(acme):
    _, admin = acme
    assert not is_token_revoked(admin, admin.token_version)
    admin.token_version = "2"
    assert is_token_revoked(admin, "1")


def test_token_without_version():
    now = int(utcnow().timestamp())
    token = jwt.encode(
        {"sub": "abc123", "iat": now, "exp": now + 60, "typ": "access"},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(TokenInvalid):
        decode_token(token)


def test_password_hash_verifies():
    hashed = hash_password("Passw0rd!")
    assert hashed != "Passw0rd!"
    assert verify_password("Passw0rd!", hashed)
    assert not verify_password("passw0rd!", hashed)


@pytest.mark.parametrize("password", ["Sh0rt!", "alllower1!", "ALLUPPER1!", "NoDigits!!", "NoSpecial12"])
def test_weak_passwords_rejected(password):
    with pytest.raises(ValueError):
        check_password_strength(password)


def test_optional_user(acme):
    _, admin = acme
    store = CredentialStore()
    assert get_optional_user(None, store) is None
    assert get_optional_user("garbage", store) is None
    assert get_optional_user(create_token(str(admin.id), admin.token_version), store).id == admin.id
