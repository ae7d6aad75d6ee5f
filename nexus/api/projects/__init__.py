from datetime import datetime, timezone

from bson.objectid import ObjectId
from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from nexus.models.document import Document
from nexus.models.project import Project
from nexus.models.user import User
from nexus.services.access import (
    admin_only,
    admin_or_project_lead,
    document_access,
    document_modify_access,
    project_access,
    project_modify_access,
    same_company,
    visible_projects,
)
from nexus.services.auth import get_current_user
from nexus.services.email import Mailer, get_mailer
from nexus.utils.base import ProjectPriority, ProjectStatus, Role
from nexus.utils.errors import Forbidden, NotFound, ValidationError


router = APIRouter()


def _check_deadline(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    if value <= datetime.now(timezone.utc):
        raise ValueError("Deadline must be in the future")
    return value


def _check_choice(value: str | None, allowed: list[str], label: str) -> str | None:
    if value is not None and value not in allowed:
        raise ValueError(f"Invalid {label}")
    return value


class CamelBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProjectBody(CamelBody):
    name: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=10, max_length=1000)
    deadline: datetime
    priority: str = ProjectPriority.MEDIUM.value
    project_lead: str | None = None

    @field_validator("deadline")
    @classmethod
    def _future_deadline(cls, value: datetime) -> datetime:
        return _check_deadline(value)

    @field_validator("priority")
    @classmethod
    def _known_priority(cls, value: str) -> str:
        return _check_choice(value, ProjectPriority.values(), "priority")


class ProjectUpdateBody(CamelBody):
    name: str | None = Field(default=None, min_length=3, max_length=100)
    description: str | None = Field(default=None, min_length=10, max_length=1000)
    deadline: datetime | None = None
    priority: str | None = None
    status: str | None = None
    project_lead: str | None = None

    @field_validator("deadline")
    @classmethod
    def _future_deadline(cls, value: datetime | None) -> datetime | None:
        return _check_deadline(value)

    @field_validator("priority")
    @classmethod
    def _known_priority(cls, value: str | None) -> str | None:
        return _check_choice(value, ProjectPriority.values(), "priority")

    @field_validator("status")
    @classmethod
    def _known_status(cls, value: str | None) -> str | None:
        return _check_choice(value, ProjectStatus.values(), "status")


class DeveloperBody(CamelBody):
    developer_id: str


class DocumentBody(CamelBody):
    original_name: str = Field(min_length=1, max_length=255)
    mimetype: str = Field(min_length=1, max_length=100)
    size: int = Field(ge=0)
    description: str | None = Field(default=None, max_length=500)
    tags: list[str] = Field(default_factory=list)


def _project_output(project: Project) -> dict:
    return project.to_output(expand=["project_lead", "assigned_developers"])


def _company_member(user_id: str, caller: User) -> User | None:
    if not ObjectId.is_valid(user_id):
        return None
    member = User.objects(id=user_id, is_active=True).first()
    if member is None or not same_company(caller, member.company_id):
        return None
    return member


def _resolve_lead(lead_id: str, caller: User) -> User:
    lead = _company_member(lead_id, caller)
    if lead is None or lead.role not in (Role.PROJECT_LEAD.value, Role.ADMIN.value):
        raise ValidationError("Project lead must be a user with project_lead or admin role from the same company")
    return lead


@router.get("/")
def list_projects(current_user: User = Depends(get_current_user)) -> list[dict]:
    """PROTECTED: Projects visible to the caller's role within their company."""
    return [_project_output(p) for p in visible_projects(current_user)]


@router.get("/active")
def list_active_projects(current_user: User = Depends(get_current_user)) -> dict:
    """PROTECTED: Active projects the caller can see in their company."""
    projects = [_project_output(p) for p in visible_projects(current_user).filter(status=ProjectStatus.ACTIVE.value)]
    return {"success": True, "count": len(projects), "data": projects}


@router.post("/", status_code=201)
def create_project(body: ProjectBody, current_user: User = Depends(admin_only)) -> dict:
    """PROTECTED (admin): Create a project in the admin's company."""
    project = Project(
        name=body.name,
        description=body.description,
        deadline=body.deadline,
        priority=body.priority,
        company=current_user.company,
        created_by=current_user,
    )
    if body.project_lead:
        project.project_lead = _resolve_lead(body.project_lead, current_user)
    project.save()
    return _project_output(project)


@router.get("/{project_id}")
def get_project(project: Project = Depends(project_access)) -> dict:
    return _project_output(project)


@router.put("/{project_id}")
def update_project(
    body: ProjectUpdateBody,
    project: Project = Depends(project_modify_access),
    current_user: User = Depends(get_current_user),
) -> dict:
    """PROTECTED (admin or the project's lead): Update project fields.

    Only admins may reassign the lead.
    """
    for field in ("name", "description", "deadline", "priority", "status"):
        value = getattr(body, field)
        if value is not None:
            setattr(project, field, value)

    if "project_lead" in body.model_fields_set and current_user.role == Role.ADMIN.value:
        project.project_lead = _resolve_lead(body.project_lead, current_user) if body.project_lead else None

    if body.status is not None:
        completed = body.status == ProjectStatus.COMPLETED.value
        if completed and project.completed_at is None:
            project.completed_at = datetime.now(timezone.utc)
        elif not completed:
            project.completed_at = None

    project.save()
    return _project_output(project)


@router.patch("/{project_id}/complete")
def complete_project(
    current_user: User = Depends(admin_or_project_lead),
    project: Project = Depends(project_modify_access),
) -> dict:
    project.status = ProjectStatus.COMPLETED.value
    project.completed_at = datetime.now(timezone.utc)
    project.save()
    return {"success": True, "message": "Project marked as completed successfully", "data": _project_output(project)}


@router.delete("/{project_id}")
def delete_project(project_id: str, current_user: User = Depends(admin_only)) -> dict:
    """PROTECTED (admin): Delete a project of the admin's company and its documents."""
    project: Project | None = Project.objects(id=project_id).first() if ObjectId.is_valid(project_id) else None
    if not project:
        raise NotFound("Project not found")
    if not same_company(current_user, project.company_id):
        raise Forbidden("Access denied to this project")

    Document.objects(project=project.id).delete()
    project.delete()
    return {"success": True, "message": "Project deleted successfully"}


@router.post("/{project_id}/assign")
def assign_developer(
    body: DeveloperBody,
    background_tasks: BackgroundTasks,
    project: Project = Depends(project_modify_access),
    current_user: User = Depends(get_current_user),
    mailer: Mailer = Depends(get_mailer),
) -> dict:
    """PROTECTED (admin or the project's lead): Assign a developer and notify them."""
    developer = _company_member(body.developer_id, current_user)
    if developer is None or developer.role != Role.DEVELOPER.value:
        raise ValidationError("Invalid developer ID")
    if developer.id in project.assigned_developer_ids:
        raise ValidationError("Developer is already assigned to this project")

    Project.objects(id=project.id).update_one(add_to_set__assigned_developers=developer)
    project.reload()

    background_tasks.add_task(
        mailer.send_project_assignment, developer.email, developer.name, project.name, project.description
    )
    return _project_output(project)


@router.post("/{project_id}/remove")
def remove_developer(body: DeveloperBody, project: Project = Depends(project_modify_access)) -> dict:
    if not ObjectId.is_valid(body.developer_id) or ObjectId(body.developer_id) not in project.assigned_developer_ids:
        raise ValidationError("Developer is not assigned to this project")

    Project.objects(id=project.id).update_one(pull__assigned_developers=ObjectId(body.developer_id))
    project.reload()
    return _project_output(project)


@router.get("/{project_id}/documents")
def list_documents(project: Project = Depends(project_access)) -> list[dict]:
    return [d.to_output() for d in Document.objects(project=project.id).order_by("-created_at")]


@router.post("/{project_id}/documents", status_code=201)
def create_document(
    body: DocumentBody,
    project: Project = Depends(project_modify_access),
    current_user: User = Depends(get_current_user),
) -> dict:
    """PROTECTED (admin or the project's lead): Record an uploaded file's metadata."""
    document = Document(
        project=project,
        original_name=body.original_name,
        mimetype=body.mimetype,
        size=body.size,
        description=body.description,
        tags=[t.strip() for t in body.tags if t.strip()],
        uploaded_by=current_user,
    )
    document.save()
    return document.to_output(expand=["uploaded_by"])


@router.get("/{project_id}/documents/{doc_id}")
def get_document(document: Document = Depends(document_access)) -> dict:
    return document.to_output(expand=["uploaded_by"])


@router.delete("/{project_id}/documents/{doc_id}")
def delete_document(document: Document = Depends(document_modify_access)) -> dict:
    document.delete()
    return {"success": True, "message": "Document deleted successfully"}
