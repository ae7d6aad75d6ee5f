from __future__ import annotations

from datetime import datetime

from bson.objectid import ObjectId
from mongoengine.errors import DoesNotExist

from nexus.models.company import Company
from nexus.models.user import User
from nexus.services.otp import ChallengePurpose
from nexus.utils.logging import get_logger


logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class CredentialStore:
    """User and tenant record access for the auth core.

    Counter and challenge mutations go through single-document update
    operators so concurrent requests for one user never overwrite each
    other. Each mutation reloads the passed-in user so callers keep seeing
    current state.
    """

    def find_by_email(self, email: str) -> User | None:
        return User.objects(email=normalize_email(email), is_active=True).first()

    def find_by_id(self, user_id) -> User | None:
        if not ObjectId.is_valid(str(user_id)):
            return None
        return User.objects(id=str(user_id)).first()

    def email_exists(self, email: str, exclude_id=None) -> bool:
        query = User.objects(email=normalize_email(email))
        if exclude_id is not None:
            query = query.filter(id__ne=exclude_id)
        return query.first() is not None

    def company_name_exists(self, name: str) -> bool:
        return Company.objects(name=name.strip()).first() is not None

    def load_company(self, user: User) -> Company | None:
        try:
            return user.company
        except DoesNotExist:
            return None

    def save(self, user: User) -> User:
        return user.save()

    def increment_login_attempts(self, user: User) -> int:
        updated = User.objects(id=user.id).modify(inc__login_attempts=1, new=True)
        user.reload()
        return updated.login_attempts if updated else user.login_attempts

    def restart_login_attempts(self, user: User) -> None:
        User.objects(id=user.id).update_one(set__login_attempts=1, unset__lock_until=True)
        user.reload()

    def set_lock(self, user: User, until: datetime) -> None:
        User.objects(id=user.id).update_one(set__lock_until=until)
        user.reload()

    def reset_login_attempts(self, user: User) -> None:
        User.objects(id=user.id).update_one(set__login_attempts=0, unset__lock_until=True)
        user.reload()

    def stamp_last_login(self, user: User, at: datetime) -> None:
        User.objects(id=user.id).update_one(set__last_login=at)
        user.reload()

    def replace_password(self, user: User, password_hash: str, at: datetime) -> bool:
        """Swap the password hash and bump the token version in one write.

        Returns False when another change landed first.
        """
        updated = User.objects(id=user.id, token_version=user.token_version).update_one(
            set__password=password_hash,
            set__password_changed_at=at,
            set__token_version=str(int(user.token_version) + 1),
        )
        user.reload()
        return bool(updated)

    def set_challenge(self, user: User, purpose: ChallengePurpose, code_hash: str, expires_at: datetime) -> None:
        User.objects(id=user.id).update_one(**{
            f"set__{purpose.hash_field}": code_hash,
            f"set__{purpose.expiry_field}": expires_at,
        })
        user.reload()

    def clear_challenge(self, user: User, purpose: ChallengePurpose) -> None:
        User.objects(id=user.id).update_one(**{
            f"unset__{purpose.hash_field}": True,
            f"unset__{purpose.expiry_field}": True,
        })
        user.reload()

    def set_mfa_enabled(self, user: User, enabled: bool) -> None:
        User.objects(id=user.id).update_one(
            set__mfa_enabled=enabled,
            unset__mfa_otp=True,
            unset__mfa_otp_expires=True,
        )
        user.reload()

    def mark_email_verified(self, user: User) -> None:
        User.objects(id=user.id).update_one(
            set__email_verified=True,
            unset__email_verification_otp=True,
            unset__email_verification_otp_expires=True,
        )
        user.reload()

    def create_company_with_admin(self, company: Company, admin: User) -> None:
        """Persist a company and its first admin, or neither.

        The store has no multi-document transactions, so a failed admin
        insert is compensated by deleting the company.
        """
        company.save()
        admin.company = company
        try:
            admin.save()
        except Exception:
            try:
                company.delete()
            except Exception:
                logger.exception("registration_compensation_failed", company_id=str(company.id))
            raise
        logger.info("company_registered", company_id=str(company.id), user_id=str(admin.id))


def get_credential_store() -> CredentialStore:
    return CredentialStore()
