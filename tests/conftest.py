import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("SMTP_HOST", "")

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import mongomock  # noqa: E402
import pytest  # noqa: E402
from bson.objectid import ObjectId  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from mongoengine import connect, disconnect  # noqa: E402

from main import app  # noqa: E402
from nexus.models.company import Company  # noqa: E402
from nexus.models.project import Project  # noqa: E402
from nexus.models.user import User  # noqa: E402
from nexus.services.auth import create_token, hash_password  # noqa: E402
from nexus.services.email import Mailer, get_mailer  # noqa: E402
from nexus.utils.base import Role  # noqa: E402
from nexus.utils.errors import EmailDeliveryFailed  # noqa: E402


PASSWORD = "Passw0rd!"


class RecordingMailer(Mailer):
    """Keeps every code it is asked to deliver instead of talking SMTP."""

    def __init__(self) -> None:
        super().__init__()
        self.codes: list[tuple[str, str, str]] = []
        self.notifications: list[tuple[str, str]] = []
        self.fail = False

    def send_mfa_otp(self, to: str, name: str, otp: str) -> None:
        if self.fail:
            raise EmailDeliveryFailed()
        self.codes.append(("mfa", to, otp))

    def send_verification_otp(self, to: str, name: str, otp: str) -> None:
        if self.fail:
            raise EmailDeliveryFailed()
        self.codes.append(("verification", to, otp))

    def send_project_assignment(self, to: str, name: str, project_name: str, project_description: str) -> None:
        self.notifications.append((to, project_name))

    def last_code(self, to: str, kind: str = "mfa") -> str:
        for sent_kind, sent_to, otp in reversed(self.codes):
            if sent_kind == kind and sent_to == to:
                return otp
        raise AssertionError(f"no {kind} code sent to {to}")


@pytest.fixture(autouse=True)
def mongo():
    connect(
        db="nexus_test",
        host="mongodb://localhost",
        alias="default",
        mongo_client_class=mongomock.MongoClient,
        tz_aware=True,
    )
    yield
    disconnect(alias="default")


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def client(mailer):
    app.dependency_overrides[get_mailer] = lambda: mailer
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_company(name: str, admin_email: str) -> tuple[Company, User]:
    """A company with a verified admin, created straight in the store."""
    admin = User(
        id=ObjectId(),
        name=f"{name} Admin",
        email=admin_email,
        password=hash_password(PASSWORD),
        role=Role.ADMIN.value,
        email_verified=True,
    )
    company = Company(name=name, created_by=admin)
    company.save()
    admin.company = company
    admin.save()
    return company, admin


def make_user(
    company: Company,
    email: str,
    role: Role = Role.DEVELOPER,
    *,
    verified: bool = True,
    mfa: bool = False,
    password: str = PASSWORD,
) -> User:
    user = User(
        name=email.split("@")[0].title(),
        email=email,
        password=hash_password(password),
        role=role.value,
        company=company,
        email_verified=verified,
        mfa_enabled=mfa,
    )
    user.save()
    return user


def make_project(company: Company, creator: User, lead: User | None = None, developers=()) -> Project:
    project = Project(
        name="Puzzle Game",
        description="A mobile puzzle game with challenging levels.",
        deadline=datetime.now(timezone.utc) + timedelta(days=30),
        company=company,
        project_lead=lead,
        assigned_developers=list(developers),
        created_by=creator,
    )
    project.save()
    return project


def auth_header(user: User, issued_at: datetime | None = None) -> dict:
    return {"Authorization": f"Bearer {create_token(str(user.id), user.token_version, issued_at=issued_at)}"}


@pytest.fixture
def acme():
    return make_company("Acme", "admin@acme.com")
