from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from nexus.models.user import User
from nexus.services.credentials import CredentialStore, get_credential_store
from nexus.services.lockout import is_locked
from nexus.utils.config import settings
from nexus.utils.errors import (
    AccountLocked,
    NexusError,
    SessionRejected,
    TokenExpired,
    TokenInvalid,
    TokenMissing,
)


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

PASSWORD_MIN_LENGTH = 8
_PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])")


class TokenClaims(BaseModel):
    """Verified contents of a session token."""
    user_id: str
    issued_at: int
    token_version: str


def verify_password(plain: str, hashed: str) -> bool:
    """Verify plaintext password against a bcrypt hash."""
    return pwd_context.verify(plain, hashed)


def hash_password(plain: str) -> str:
    """Hash a plaintext password using bcrypt."""
    return pwd_context.hash(plain)


def burn_password_check() -> None:
    """Spend the same time as a real verify when there is no user to check."""
    pwd_context.dummy_verify()


def check_password_strength(plain: str) -> str:
    """Raise ValueError unless the password meets the account policy."""
    if len(plain) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if not _PASSWORD_PATTERN.match(plain):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, "
            "one number, and one special character"
        )
    return plain


def create_token(user_id: str, token_version: str, issued_at: datetime | None = None) -> str:
    """Create a signed session JWT for a user.

    ``token_version`` must match the user's current version for the token to
    verify; changing the password bumps it.
    """
    now = issued_at or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=settings.token_expires_days)).timestamp()),
        "tv": token_version,
        "typ": "access",
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> TokenClaims:
    """Verify signature and expiry and return the session claims."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise TokenExpired()
    except JWTError:
        raise TokenInvalid()

    user_id = payload.get("sub")
    issued_at = payload.get("iat")
    token_version = payload.get("tv")
    if not user_id or not isinstance(issued_at, int) or not token_version or payload.get("typ") != "access":
        raise TokenInvalid()
    return TokenClaims(user_id=user_id, issued_at=issued_at, token_version=str(token_version))


def is_token_revoked(user: User, token_version: str) -> bool:
    return user.token_version != token_version


def resolve_session(token: str, store: CredentialStore) -> User:
    """Turn a bearer token into a loaded, active user of an active company."""
    claims = decode_token(token)

    user = store.find_by_id(claims.user_id)
    if not user:
        raise SessionRejected("User no longer exists")
    if not user.is_active:
        raise SessionRejected("User account is deactivated")

    company = store.load_company(user)
    if company is None or not company.is_active:
        raise SessionRejected("Company account is deactivated")

    if is_token_revoked(user, claims.token_version):
        raise SessionRejected("User recently changed password. Please log in again")

    if is_locked(user):
        raise AccountLocked()
    return user


def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    store: CredentialStore = Depends(get_credential_store),
) -> User:
    """Auth dependency that validates a bearer token and returns the user."""
    if not token:
        raise TokenMissing()
    return resolve_session(token, store)


def get_optional_user(
    token: str | None = Depends(oauth2_scheme),
    store: CredentialStore = Depends(get_credential_store),
) -> User | None:
    """Like get_current_user, but anonymous callers and bad tokens yield None."""
    if not token:
        return None
    try:
        return resolve_session(token, store)
    except NexusError:
        return None
