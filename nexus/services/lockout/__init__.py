"""Account lockout after repeated failed sign-in attempts.

Password and MFA-code failures share one counter. The threshold-th failure
locks the account; failures while locked never extend the lock, and a
failure after an expired lock starts counting again from one.
"""
from __future__ import annotations

from datetime import datetime, timedelta

from nexus.models.user import User
from nexus.services.credentials import CredentialStore
from nexus.utils.base.time import as_utc, utcnow
from nexus.utils.config import settings
from nexus.utils.logging import get_logger


logger = get_logger(__name__)


def is_locked(user: User, now: datetime | None = None) -> bool:
    lock_until = as_utc(user.lock_until)
    return lock_until is not None and lock_until > (now or utcnow())


def record_failure(store: CredentialStore, user: User, now: datetime | None = None) -> int:
    """Count a failed attempt and engage the lock at the threshold.

    Returns the attempt count after the update.
    """
    now = now or utcnow()
    lock_until = as_utc(user.lock_until)
    if lock_until is not None and lock_until <= now:
        store.restart_login_attempts(user)
        return 1

    was_locked = is_locked(user, now)
    attempts = store.increment_login_attempts(user)
    if attempts >= settings.max_login_attempts and not was_locked:
        until = now + timedelta(minutes=settings.lock_minutes)
        store.set_lock(user, until)
        logger.warning("account_locked", user_id=str(user.id), attempts=attempts, lock_until=until.isoformat())
    return attempts


def record_success(store: CredentialStore, user: User) -> None:
    store.reset_login_attempts(user)
