from __future__ import annotations

from datetime import datetime, timedelta, timezone

from bson.objectid import ObjectId

from nexus.connections.mongo import init_mongo, close_mongo
from nexus.models.company import Company
from nexus.models.document import Document
from nexus.models.project import Project
from nexus.models.user import User
from nexus.services.auth import hash_password
from nexus.utils.base import ProjectPriority, Role


COMPANY_NAME = "PixelForge"


def _ensure_company() -> tuple[Company, User]:
    company = Company.objects(name=COMPANY_NAME).first()
    if company:
        return company, User.objects(id=company.created_by.pk).first()

    admin = User(
        id=ObjectId(),
        name="System Administrator",
        email="admin@pixelforge.com",
        password=hash_password("Admin123!@#"),
        role=Role.ADMIN.value,
        email_verified=True,
    )
    company = Company(name=COMPANY_NAME, description="Game studio", industry="Games", created_by=admin)
    company.save()
    admin.company = company
    admin.save()
    return company, admin


def _ensure_users(company: Company) -> dict[str, User]:
    users: dict[str, User] = {}
    fixtures = [
        ("lead", "John Smith", "john.smith@pixelforge.com", "Lead123!@#", Role.PROJECT_LEAD),
        ("alice", "Alice Johnson", "alice.johnson@pixelforge.com", "Dev123!@#", Role.DEVELOPER),
        ("bob", "Bob Wilson", "bob.wilson@pixelforge.com", "Dev123!@#", Role.DEVELOPER),
        ("carol", "Carol Davis", "carol.davis@pixelforge.com", "Dev123!@#", Role.DEVELOPER),
    ]
    for key, name, email, pwd, role in fixtures:
        user = User.objects(email=email).first()
        if not user:
            user = User(
                name=name,
                email=email,
                password=hash_password(pwd),
                role=role.value,
                company=company,
                email_verified=True,
            )
            user.save()
        users[key] = user
    return users


def _ensure_projects(company: Company, admin: User, users: dict[str, User]) -> list[Project]:
    now = datetime.now(timezone.utc)
    fixtures = [
        (
            "Mobile Game Development",
            "Develop a new mobile puzzle game with engaging graphics and challenging levels.",
            90,
            ProjectPriority.HIGH,
            ["alice", "bob"],
        ),
        (
            "VR Experience Platform",
            "Create an immersive virtual reality platform for educational content delivery.",
            120,
            ProjectPriority.MEDIUM,
            ["carol"],
        ),
    ]
    projects: list[Project] = []
    for name, description, days, priority, developers in fixtures:
        project = Project.objects(name=name, company=company).first()
        if not project:
            project = Project(
                name=name,
                description=description,
                deadline=now + timedelta(days=days),
                priority=priority.value,
                company=company,
                project_lead=users["lead"],
                assigned_developers=[users[d] for d in developers],
                created_by=admin,
            )
            project.save()
        projects.append(project)
    return projects


def seed() -> None:
    init_mongo()
    try:
        Document.drop_collection()
        Project.drop_collection()
        User.drop_collection()
        Company.drop_collection()

        company, admin = _ensure_company()
        users = _ensure_users(company)
        _ensure_projects(company, admin, users)
        print("Seed completed.")
    finally:
        close_mongo()


if __name__ == "__main__":
    seed()
