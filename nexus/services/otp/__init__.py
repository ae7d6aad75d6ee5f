"""Email one-time-password challenges.

Only the SHA-256 digest of a code is ever stored; the plaintext goes straight
to the mailer. A challenge lives on the user record as a (hash, expiry) pair.
"""
from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta

from pydantic import BaseModel

from nexus.utils.base import BaseEnum
from nexus.utils.base.time import as_utc, utcnow
from nexus.utils.config import settings
from nexus.utils.errors import ChallengeExpired, NoChallenge


OTP_LENGTH = 6


class ChallengePurpose(BaseEnum):
    MFA = "mfa"
    EMAIL_VERIFICATION = "email_verification"

    @property
    def hash_field(self) -> str:
        return f"{self.value}_otp"

    @property
    def expiry_field(self) -> str:
        return f"{self.value}_otp_expires"


class OtpChallenge(BaseModel):
    code: str
    code_hash: str
    expires_at: datetime


def generate_code() -> str:
    return f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"


def hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def is_valid_format(code: str | None) -> bool:
    """Exactly six ASCII digits."""
    return (
        isinstance(code, str)
        and len(code) == OTP_LENGTH
        and all(ch in "0123456789" for ch in code)
    )


def issue_challenge(now: datetime | None = None, ttl: timedelta | None = None) -> OtpChallenge:
    now = now or utcnow()
    ttl = ttl or timedelta(minutes=settings.otp_expires_minutes)
    code = generate_code()
    return OtpChallenge(code=code, code_hash=hash_code(code), expires_at=now + ttl)


def verify_code(
    submitted: str,
    code_hash: str | None,
    expires_at: datetime | None,
    now: datetime | None = None,
) -> bool:
    """Check a submitted code against a stored challenge.

    Raises NoChallenge when nothing is pending and ChallengeExpired once the
    expiry has passed. Returns True only on an exact digest match.
    """
    if not code_hash or expires_at is None:
        raise NoChallenge()
    now = now or utcnow()
    if now > as_utc(expires_at):
        raise ChallengeExpired()
    return hmac.compare_digest(hash_code(submitted), code_hash)
