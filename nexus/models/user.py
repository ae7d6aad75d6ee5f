from mongoengine import BooleanField, DateTimeField, EmailField, IntField, ReferenceField, StringField, ValidationError

from nexus.models.base import BaseDocument, ref_id
from nexus.models.company import Company
from nexus.utils.base import Role


class User(BaseDocument):
    """User document.

    Fields:
    - name (str): Full name
    - email (str, unique): Login identifier, stored lower-cased
    - password (str, hashed): Bcrypt hash, never serialized
    - role (str): admin/project_lead/developer
    - company (Ref[Company]): Required for every persisted user
    - is_active/email_verified/mfa_enabled (bool)
    - mfa_otp/mfa_otp_expires: Live MFA challenge (sha256 hex + expiry)
    - email_verification_otp/email_verification_otp_expires: Live verification challenge
    - login_attempts/lock_until: Lockout state
    - last_login/password_changed_at (datetime)
    - token_version (str): Bumped on password change to revoke issued tokens
    """
    name = StringField(required=True, null=False, min_length=2, max_length=50)
    email = EmailField(required=True, null=False, unique=True)
    password = StringField(required=True, null=False)
    role = StringField(required=True, null=False, default=Role.DEVELOPER.value, choices=Role.choices())
    company = ReferenceField(document_type=Company, required=False, null=True)

    is_active = BooleanField(required=True, null=False, default=True)
    email_verified = BooleanField(required=True, null=False, default=False)
    mfa_enabled = BooleanField(required=True, null=False, default=False)

    mfa_otp = StringField(required=False, null=True)
    mfa_otp_expires = DateTimeField(required=False, null=True)
    email_verification_otp = StringField(required=False, null=True)
    email_verification_otp_expires = DateTimeField(required=False, null=True)

    login_attempts = IntField(required=True, null=False, default=0, min_value=0)
    lock_until = DateTimeField(required=False, null=True)
    last_login = DateTimeField(required=False, null=True)
    password_changed_at = DateTimeField(required=False, null=True)
    token_version = StringField(required=True, null=False, default="1")

    hidden_fields = (
        "password",
        "mfa_otp",
        "mfa_otp_expires",
        "email_verification_otp",
        "email_verification_otp_expires",
        "login_attempts",
        "lock_until",
        "password_changed_at",
        "token_version",
        "metadata",
    )

    meta = {
        "collection": "users",
        "indexes": [
            {"fields": ["email"], "unique": True},
            {"fields": ["role"]},
            {"fields": ["is_active"]},
            {"fields": ["company"]},
        ],
    }

    @property
    def company_id(self):
        return ref_id(self._data.get("company"))

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    def clean(self):
        if self.email:
            self.email = self.email.strip().lower()
        if self.name:
            self.name = self.name.strip()

        # Only an admin being bootstrapped alongside its company may lack one.
        if self.company is None and (self.role != Role.ADMIN.value or not self._created):
            raise ValidationError("Company is required for this user")

        for hash_field, expiry_field in (
            ("mfa_otp", "mfa_otp_expires"),
            ("email_verification_otp", "email_verification_otp_expires"),
        ):
            if (getattr(self, hash_field) is None) != (getattr(self, expiry_field) is None):
                raise ValidationError(f"{hash_field} and {expiry_field} must be set together")
