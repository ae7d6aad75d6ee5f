"""Sign-in, registration and second-factor ceremonies.

The login state machine:

    credentials -> password verified -> [MFA challenge -> MFA verified] -> session

Unknown email and wrong password fail identically. A locked account is
refused before its password is looked at. Accounts whose email was never
verified get a fresh verification code instead of a session.
"""
from __future__ import annotations

from datetime import datetime

from bson.objectid import ObjectId
from fastapi import Depends
from mongoengine.errors import NotUniqueError
from pydantic import BaseModel

from nexus.models.company import Company
from nexus.models.user import User
from nexus.services.auth import burn_password_check, check_password_strength, create_token, hash_password, verify_password
from nexus.services.credentials import CredentialStore, get_credential_store, normalize_email
from nexus.services.email import Mailer, get_mailer
from nexus.services.lockout import is_locked, record_failure, record_success
from nexus.services.otp import ChallengePurpose, is_valid_format, issue_challenge, verify_code
from nexus.utils.base import CompanySize, Role
from nexus.utils.base.time import utcnow
from nexus.utils.errors import (
    AccountLocked,
    Conflict,
    EmailDeliveryFailed,
    InvalidCredentials,
    InvalidMFACode,
    InvalidOtp,
    NotFound,
    SessionRejected,
    ValidationError,
)
from nexus.utils.logging import get_logger


logger = get_logger(__name__)

TEAM_MEMBER_ROLES = (Role.PROJECT_LEAD, Role.DEVELOPER)


class LoginResult(BaseModel):
    """Outcome of a sign-in step: a session, or the next challenge to answer."""
    token: str | None = None
    user: dict | None = None
    requires_mfa: bool = False
    requires_email_verification: bool = False
    user_id: str | None = None


class AuthenticationFlow:
    def __init__(self, store: CredentialStore, mailer: Mailer) -> None:
        self.store = store
        self.mailer = mailer

    # -- sessions -------------------------------------------------------

    def _open_session(self, user: User, now: datetime) -> LoginResult:
        record_success(self.store, user)
        self.store.stamp_last_login(user, now)
        logger.info("login_succeeded", user_id=str(user.id))
        token = create_token(str(user.id), user.token_version, issued_at=now)
        return LoginResult(token=token, user=user.to_output(expand=["company"]))

    def _send_challenge(self, user: User, purpose: ChallengePurpose, now: datetime) -> None:
        challenge = issue_challenge(now=now)
        self.store.set_challenge(user, purpose, challenge.code_hash, challenge.expires_at)
        try:
            if purpose is ChallengePurpose.MFA:
                self.mailer.send_mfa_otp(user.email, user.name, challenge.code)
            else:
                self.mailer.send_verification_otp(user.email, user.name, challenge.code)
        except EmailDeliveryFailed:
            # An undeliverable code is useless; drop it.
            try:
                self.store.clear_challenge(user, purpose)
            except Exception:
                logger.exception("challenge_cleanup_failed", user_id=str(user.id))
            raise
        logger.info("otp_challenge_issued", user_id=str(user.id), purpose=purpose.value)

    def login(self, email: str, password: str, mfa_code: str | None = None, now: datetime | None = None) -> LoginResult:
        now = now or utcnow()

        user = self.store.find_by_email(email)
        if not user:
            burn_password_check()
            logger.info("login_failed", reason="unknown_email")
            raise InvalidCredentials()

        if is_locked(user, now):
            logger.info("login_refused_locked", user_id=str(user.id))
            raise AccountLocked()

        if not verify_password(password, user.password):
            attempts = record_failure(self.store, user, now)
            logger.info("login_failed", reason="bad_password", user_id=str(user.id), attempts=attempts)
            raise InvalidCredentials()

        if not user.email_verified:
            record_success(self.store, user)
            self._send_challenge(user, ChallengePurpose.EMAIL_VERIFICATION, now)
            return LoginResult(requires_email_verification=True, user_id=str(user.id))

        if not user.mfa_enabled:
            return self._open_session(user, now)

        if not mfa_code:
            self._send_challenge(user, ChallengePurpose.MFA, now)
            return LoginResult(requires_mfa=True)

        if not is_valid_format(mfa_code):
            raise ValidationError("Invalid MFA code format")

        if not verify_code(mfa_code, user.mfa_otp, user.mfa_otp_expires, now):
            attempts = record_failure(self.store, user, now)
            logger.info("login_failed", reason="bad_mfa_code", user_id=str(user.id), attempts=attempts)
            raise InvalidMFACode()

        self.store.clear_challenge(user, ChallengePurpose.MFA)
        return self._open_session(user, now)

    # -- registration ---------------------------------------------------

    def register_company(
        self,
        *,
        name: str,
        email: str,
        password: str,
        company_name: str,
        company_description: str | None = None,
        industry: str | None = None,
        company_size: str | None = None,
        now: datetime | None = None,
    ) -> User:
        """Create a company with its first admin, then send the verification code."""
        now = now or utcnow()
        email = normalize_email(email)

        if self.store.email_exists(email):
            raise Conflict("User with this email already exists")
        if self.store.company_name_exists(company_name):
            raise Conflict("Company name already exists. Please choose a different name.")

        admin = User(
            id=ObjectId(),
            name=name,
            email=email,
            password=hash_password(password),
            role=Role.ADMIN.value,
            password_changed_at=now,
        )
        company = Company(
            name=company_name,
            description=company_description,
            industry=industry,
            size=company_size or CompanySize.TINY.value,
            created_by=admin,
        )
        try:
            self.store.create_company_with_admin(company, admin)
        except NotUniqueError:
            if self.store.company_name_exists(company_name):
                raise Conflict("Company name already exists. Please choose a different name.")
            raise Conflict("User with this email already exists")

        try:
            self._send_challenge(admin, ChallengePurpose.EMAIL_VERIFICATION, now)
        except EmailDeliveryFailed:
            raise EmailDeliveryFailed(
                "Account created, but the verification email could not be sent. Request a new code to continue."
            )
        return admin

    def register_team_member(self, admin: User, *, name: str, email: str, password: str, role: str) -> User:
        if role not in {r.value for r in TEAM_MEMBER_ROLES}:
            raise ValidationError("Invalid role specified. Only project_lead and developer roles are allowed.")
        if self.store.email_exists(email):
            raise Conflict("User with this email already exists")

        member = User(
            name=name,
            email=normalize_email(email),
            password=hash_password(password),
            role=role,
            company=admin.company,
            password_changed_at=utcnow(),
        )
        try:
            self.store.save(member)
        except NotUniqueError:
            raise Conflict("User with this email already exists")
        logger.info("team_member_registered", user_id=str(member.id), role=role, registered_by=str(admin.id))
        return member

    # -- email verification ---------------------------------------------

    def verify_email(self, user_id: str, otp: str, now: datetime | None = None) -> LoginResult:
        now = now or utcnow()
        user = self.store.find_by_id(user_id)
        if not user or not user.is_active:
            raise NotFound("User not found")
        if user.email_verified:
            raise ValidationError("Email is already verified")
        if is_locked(user, now):
            raise AccountLocked()
        if not is_valid_format(otp):
            raise ValidationError("Invalid OTP format")

        if not verify_code(otp, user.email_verification_otp, user.email_verification_otp_expires, now):
            record_failure(self.store, user, now)
            raise InvalidOtp()

        self.store.mark_email_verified(user)
        logger.info("email_verified", user_id=str(user.id))
        return self._open_session(user, now)

    def resend_verification(self, email: str, now: datetime | None = None) -> None:
        """Send a fresh verification code. Silent for unknown or verified emails."""
        user = self.store.find_by_email(email)
        if not user or user.email_verified:
            return
        self._send_challenge(user, ChallengePurpose.EMAIL_VERIFICATION, now or utcnow())

    # -- account security -----------------------------------------------

    def change_password(self, user: User, current_password: str, new_password: str, now: datetime | None = None) -> str:
        """Replace the password and return a fresh session token.

        Tokens issued before the change stop verifying.
        """
        now = now or utcnow()
        if not verify_password(current_password, user.password):
            raise ValidationError("Current password is incorrect")
        try:
            check_password_strength(new_password)
        except ValueError as exc:
            raise ValidationError(str(exc))

        if not self.store.replace_password(user, hash_password(new_password), now):
            raise SessionRejected("User recently changed password. Please log in again")
        record_success(self.store, user)
        logger.info("password_changed", user_id=str(user.id))
        return create_token(str(user.id), user.token_version, issued_at=now)

    def start_mfa_setup(self, user: User, now: datetime | None = None) -> None:
        self._send_challenge(user, ChallengePurpose.MFA, now or utcnow())

    def _check_mfa_otp(self, user: User, otp: str, now: datetime | None) -> None:
        if not is_valid_format(otp):
            raise ValidationError("Invalid OTP format")
        if not verify_code(otp, user.mfa_otp, user.mfa_otp_expires, now or utcnow()):
            raise InvalidOtp()

    def enable_mfa(self, user: User, otp: str, now: datetime | None = None) -> None:
        if user.mfa_enabled:
            raise ValidationError("MFA is already enabled for this account")
        self._check_mfa_otp(user, otp, now)
        self.store.set_mfa_enabled(user, True)
        logger.info("mfa_enabled", user_id=str(user.id))

    def disable_mfa(self, user: User, otp: str, now: datetime | None = None) -> None:
        if not user.mfa_enabled:
            raise ValidationError("MFA is not enabled for this account")
        self._check_mfa_otp(user, otp, now)
        self.store.set_mfa_enabled(user, False)
        logger.info("mfa_disabled", user_id=str(user.id))


def get_auth_flow(
    store: CredentialStore = Depends(get_credential_store),
    mailer: Mailer = Depends(get_mailer),
) -> AuthenticationFlow:
    return AuthenticationFlow(store, mailer)
