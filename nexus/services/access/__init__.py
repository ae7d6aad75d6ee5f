"""Role and tenancy checks layered on top of an authenticated session.

Every decision is scoped to the caller's company first; role only narrows
access further inside that boundary.
"""
from __future__ import annotations

from typing import assert_never

from bson.objectid import ObjectId
from fastapi import Depends
from mongoengine.errors import MongoEngineException
from mongoengine.queryset.visitor import Q
from pymongo.errors import PyMongoError

from nexus.models.document import Document
from nexus.models.project import Project
from nexus.models.user import User
from nexus.services.auth import get_current_user
from nexus.utils.base import ProjectStatus, Role
from nexus.utils.errors import AccessCheckFailed, Forbidden, NotFound
from nexus.utils.logging import get_logger


logger = get_logger(__name__)


def require_roles(*roles: Role, message: str = "Insufficient permissions"):
    """Return a dependency that admits only callers holding one of ``roles``."""
    allowed = frozenset(Role(r) for r in roles)

    def _dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role_enum not in allowed:
            raise Forbidden(message)
        return current_user

    return _dependency


admin_only = require_roles(Role.ADMIN)
admin_or_project_lead = require_roles(Role.ADMIN, Role.PROJECT_LEAD)


def same_company(user: User, company_id) -> bool:
    return company_id is not None and user.company_id == company_id


def can_access_project(project: Project, user: User) -> bool:
    if not same_company(user, project.company_id):
        return False

    role = user.role_enum
    match role:
        case Role.ADMIN:
            return True
        case Role.PROJECT_LEAD:
            return project.project_lead_id == user.id
        case Role.DEVELOPER:
            return user.id in project.assigned_developer_ids
        case _:
            assert_never(role)


def can_modify_project(project: Project, user: User) -> bool:
    if not same_company(user, project.company_id):
        return False

    role = user.role_enum
    match role:
        case Role.ADMIN:
            return True
        case Role.PROJECT_LEAD:
            return project.project_lead_id == user.id
        case Role.DEVELOPER:
            return False
        case _:
            assert_never(role)


def visible_projects(user: User):
    """Projects the caller's role lets them list, newest first."""
    query = Project.objects(company=user.company_id)
    role = user.role_enum
    match role:
        case Role.ADMIN:
            pass
        case Role.PROJECT_LEAD:
            query = query.filter(project_lead=user.id)
        case Role.DEVELOPER:
            query = query.filter(assigned_developers=user.id)
        case _:
            assert_never(role)
    return query.order_by("-created_at")


def active_assignments(user: User):
    """Non-completed projects the user leads or is assigned to."""
    return Project.objects(
        (Q(project_lead=user.id) | Q(assigned_developers=user.id)) & Q(status__ne=ProjectStatus.COMPLETED.value)
    )


def _load_project(project_id: str, purpose: str) -> Project | None:
    if not ObjectId.is_valid(project_id):
        return None
    try:
        return Project.objects(id=project_id).first()
    except (MongoEngineException, PyMongoError):
        logger.exception("project_access_check_failed", project_id=project_id, purpose=purpose)
        raise AccessCheckFailed(f"Error checking project {purpose}")


def project_access(project_id: str, current_user: User = Depends(get_current_user)) -> Project:
    """Dependency: the project, if the caller may read it.

    A missing project answers the same 403 as a forbidden one.
    """
    project = _load_project(project_id, "access")
    if project is None or not can_access_project(project, current_user):
        raise Forbidden("Access denied to this project")
    return project


def project_modify_access(project_id: str, current_user: User = Depends(get_current_user)) -> Project:
    """Dependency: the project, if the caller may change it."""
    project = _load_project(project_id, "modify access")
    if project is None:
        raise NotFound("Project not found")
    if not can_modify_project(project, current_user):
        raise Forbidden("Insufficient permissions to modify this project")
    return project


def _load_document(project: Project, doc_id: str) -> Document:
    if not ObjectId.is_valid(doc_id):
        raise NotFound("Document not found")
    document = Document.objects(id=doc_id, project=project.id).first()
    if document is None:
        raise NotFound("Document not found")
    return document


def document_access(doc_id: str, project: Project = Depends(project_access)) -> Document:
    return _load_document(project, doc_id)


def document_modify_access(doc_id: str, project: Project = Depends(project_modify_access)) -> Document:
    return _load_document(project, doc_id)
