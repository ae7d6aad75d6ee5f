from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from nexus.models.user import User
from nexus.services.access import require_roles
from nexus.services.auth import check_password_strength, get_current_user
from nexus.services.login import AuthenticationFlow, LoginResult, get_auth_flow
from nexus.utils.base import CompanySize, Role


router = APIRouter()

admin_registrar = require_roles(Role.ADMIN, message="Only administrators can register new team members")


class CamelBody(BaseModel):
    """Request body accepting camelCase keys as well as field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StrongPasswordBody(CamelBody):
    @field_validator("password", "new_password", check_fields=False)
    @classmethod
    def _strong_password(cls, value: str) -> str:
        return check_password_strength(value)


def _session_response(result: LoginResult) -> dict:
    return {"success": True, "token": result.token, "user": result.user}


class LoginBody(CamelBody):
    email: EmailStr
    password: str = Field(min_length=1)
    mfa_code: str | None = None

@router.post("/login")
def login(body: LoginBody, flow: AuthenticationFlow = Depends(get_auth_flow)) -> dict:
    """PUBLIC: Password sign-in, with a second step when MFA is on."""
    result = flow.login(body.email, body.password, body.mfa_code or None)
    if result.requires_email_verification:
        return {
            "success": False,
            "requiresEmailVerification": True,
            "userId": result.user_id,
            "message": "Email verification required. A code has been sent to your email",
        }
    if result.requires_mfa:
        return {"success": False, "requiresMFA": True, "message": "MFA code sent to your email"}
    return _session_response(result)


class RegisterBody(StrongPasswordBody):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str
    company_name: str = Field(min_length=2, max_length=100)
    company_description: str | None = Field(default=None, max_length=500)
    industry: str | None = Field(default=None, max_length=50)
    company_size: str | None = None

    @field_validator("company_size")
    @classmethod
    def _known_size(cls, value: str | None) -> str | None:
        if value is not None and value not in CompanySize.values():
            raise ValueError("Invalid company size")
        return value

@router.post("/register", status_code=201)
def register(body: RegisterBody, flow: AuthenticationFlow = Depends(get_auth_flow)) -> dict:
    """PUBLIC: Create a company with its admin; the admin must verify their email next."""
    admin = flow.register_company(
        name=body.name,
        email=body.email,
        password=body.password,
        company_name=body.company_name,
        company_description=body.company_description,
        industry=body.industry,
        company_size=body.company_size,
    )
    return {
        "success": True,
        "requiresEmailVerification": True,
        "userId": str(admin.id),
        "message": "Company and admin user created. A verification code has been sent to your email",
    }


class VerifyEmailBody(CamelBody):
    user_id: str
    otp: str

@router.post("/verify-email")
def verify_email(body: VerifyEmailBody, flow: AuthenticationFlow = Depends(get_auth_flow)) -> dict:
    """PUBLIC: Confirm the emailed code and open a session."""
    return _session_response(flow.verify_email(body.user_id, body.otp))


class ResendVerificationBody(CamelBody):
    email: EmailStr

@router.post("/resend-verification")
def resend_verification(body: ResendVerificationBody, flow: AuthenticationFlow = Depends(get_auth_flow)) -> dict:
    """PUBLIC: Same answer whether or not the address is registered."""
    flow.resend_verification(body.email)
    return {"success": True, "message": "If the account needs verification, a new code has been sent"}


class TeamMemberBody(StrongPasswordBody):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str
    role: str

@router.post("/register-team-member", status_code=201)
def register_team_member(
    body: TeamMemberBody,
    admin: User = Depends(admin_registrar),
    flow: AuthenticationFlow = Depends(get_auth_flow),
) -> dict:
    """PROTECTED (admin): Add a project lead or developer to the admin's company."""
    member = flow.register_team_member(
        admin, name=body.name, email=body.email, password=body.password, role=body.role
    )
    return {
        "success": True,
        "message": "Team member registered successfully",
        "user": member.to_output(expand=["company"]),
    }


@router.get("/verify")
def verify_session(current_user: User = Depends(get_current_user)) -> dict:
    """PROTECTED: Echo the session's user."""
    return {"success": True, "user": current_user.to_output(expand=["company"])}


class PasswordBody(StrongPasswordBody):
    current_password: str = Field(min_length=1)
    new_password: str

@router.put("/password")
def update_password(
    body: PasswordBody,
    current_user: User = Depends(get_current_user),
    flow: AuthenticationFlow = Depends(get_auth_flow),
) -> dict:
    """PROTECTED: Change password; earlier tokens stop working."""
    token = flow.change_password(current_user, body.current_password, body.new_password)
    return {"success": True, "message": "Password updated successfully", "token": token}
