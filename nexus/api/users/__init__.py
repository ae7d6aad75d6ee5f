from datetime import datetime, timedelta, timezone

from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from nexus.models.user import User
from nexus.services.access import active_assignments, admin_only, same_company
from nexus.services.auth import get_current_user
from nexus.services.credentials import CredentialStore, get_credential_store, normalize_email
from nexus.utils.base import Role
from nexus.utils.base.time import as_utc, utcnow
from nexus.utils.errors import Conflict, Forbidden, NotFound, ValidationError


router = APIRouter()


class UserUpdateBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str | None = Field(default=None, min_length=2, max_length=50)
    email: EmailStr | None = None
    role: str | None = None
    is_active: bool | None = None


def _company_user(user_id: str, caller: User) -> User:
    """Load a user of the caller's company; other tenants look like missing users."""
    user = User.objects(id=user_id).first() if ObjectId.is_valid(user_id) else None
    if user is None or not same_company(caller, user.company_id):
        raise NotFound("User not found")
    return user


@router.get("/")
def list_users(
    role: str | None = None,
    is_active: bool | None = Query(default=None, alias="isActive"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    current_user: User = Depends(admin_only),
) -> dict:
    """PROTECTED (admin): Paginated users of the admin's company."""
    query = User.objects(company=current_user.company_id)
    if role:
        query = query.filter(role=role)
    if is_active is not None:
        query = query.filter(is_active=is_active)

    total = query.count()
    users = list(query.order_by("-created_at").skip((page - 1) * limit).limit(limit))
    return {
        "success": True,
        "count": len(users),
        "total": total,
        "page": page,
        "pages": (total + limit - 1) // limit,
        "data": [u.to_output() for u in users],
    }


@router.get("/stats/overview")
def user_stats(current_user: User = Depends(admin_only)) -> dict:
    """PROTECTED (admin): Head counts for the admin's company."""
    members = list(User.objects(company=current_user.company_id).only("role", "is_active", "created_at"))
    cutoff = utcnow() - timedelta(days=30)

    by_role = []
    for role in Role:
        holders = [u for u in members if u.role == role.value]
        if holders:
            by_role.append({"role": role.value, "count": len(holders), "active": sum(u.is_active for u in holders)})

    return {
        "success": True,
        "data": {
            "total": len(members),
            "active": sum(u.is_active for u in members),
            "recent": sum(1 for u in members if as_utc(u.created_at) >= cutoff),
            "byRole": by_role,
        },
    }


@router.get("/{user_id}")
def get_user(user_id: str, current_user: User = Depends(get_current_user)) -> dict:
    """PROTECTED: Own profile, or any company member for admins."""
    if current_user.role != Role.ADMIN.value and str(current_user.id) != user_id:
        raise Forbidden("Access denied")
    return {"success": True, "data": _company_user(user_id, current_user).to_output()}


@router.put("/{user_id}")
def update_user(
    user_id: str,
    body: UserUpdateBody,
    current_user: User = Depends(get_current_user),
    store: CredentialStore = Depends(get_credential_store),
) -> dict:
    """PROTECTED: Name and email for oneself; role and active flag for admins."""
    is_admin = current_user.role == Role.ADMIN.value
    if not is_admin and str(current_user.id) != user_id:
        raise Forbidden("Access denied")

    user = _company_user(user_id, current_user)
    if body.name:
        user.name = body.name
    if body.email:
        if store.email_exists(body.email, exclude_id=user.id):
            raise Conflict("Email is already taken")
        new_email = normalize_email(body.email)
        if new_email != user.email:
            # A new address has to be proven again on next login.
            user.email = new_email
            user.email_verified = False
            user.email_verification_otp = None
            user.email_verification_otp_expires = None

    if is_admin:
        if body.role:
            if body.role not in Role.values():
                raise ValidationError("Invalid role specified")
            user.role = body.role
        if body.is_active is not None:
            user.is_active = body.is_active

    store.save(user)
    return {"success": True, "data": user.to_output()}


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    current_user: User = Depends(admin_only),
    store: CredentialStore = Depends(get_credential_store),
) -> dict:
    """PROTECTED (admin): Deactivate a user with no open project assignments."""
    if str(current_user.id) == user_id:
        raise ValidationError("Cannot delete your own account")

    user = _company_user(user_id, current_user)
    if active_assignments(user).first() is not None:
        raise ValidationError("Cannot delete user who is assigned to active projects")

    stamp = int(datetime.now(timezone.utc).timestamp() * 1000)
    user.is_active = False
    user.email = f"deleted_{stamp}_{user.email}"
    store.save(user)
    return {"success": True, "message": "User deactivated successfully"}
