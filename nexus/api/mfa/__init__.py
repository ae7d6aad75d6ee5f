from fastapi import APIRouter, Depends
from pydantic import BaseModel

from nexus.models.user import User
from nexus.services.auth import get_current_user
from nexus.services.login import AuthenticationFlow, get_auth_flow


router = APIRouter()


class OtpBody(BaseModel):
    otp: str


@router.post("/setup")
def setup_mfa(
    current_user: User = Depends(get_current_user),
    flow: AuthenticationFlow = Depends(get_auth_flow),
) -> dict:
    """PROTECTED: Email a code that /enable or /disable will consume."""
    flow.start_mfa_setup(current_user)
    return {"success": True, "message": "OTP sent to your email."}


@router.post("/enable")
def enable_mfa(
    body: OtpBody,
    current_user: User = Depends(get_current_user),
    flow: AuthenticationFlow = Depends(get_auth_flow),
) -> dict:
    flow.enable_mfa(current_user, body.otp)
    return {"success": True, "message": "MFA enabled successfully."}


@router.post("/disable")
def disable_mfa(
    body: OtpBody,
    current_user: User = Depends(get_current_user),
    flow: AuthenticationFlow = Depends(get_auth_flow),
) -> dict:
    flow.disable_mfa(current_user, body.otp)
    return {"success": True, "message": "MFA disabled successfully."}
