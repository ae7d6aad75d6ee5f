from mongoengine import DateTimeField, ListField, ReferenceField, StringField

from nexus.models.base import BaseDocument, ref_id
from nexus.models.company import Company
from nexus.models.user import User
from nexus.utils.base import ProjectPriority, ProjectStatus


class Project(BaseDocument):
    """Project document.

    Fields:
    - name/description (str)
    - deadline (datetime)
    - status/priority (str)
    - company (Ref[Company]): Owning tenant
    - project_lead (Ref[User]|None)
    - assigned_developers (list[Ref[User]])
    - created_by (Ref[User])
    - completed_at (datetime|None)
    """
    name = StringField(required=True, null=False, min_length=3, max_length=100)
    description = StringField(required=True, null=False, min_length=10, max_length=1000)
    deadline = DateTimeField(required=True, null=False)
    status = StringField(required=True, null=False, default=ProjectStatus.ACTIVE.value, choices=ProjectStatus.choices())
    priority = StringField(required=True, null=False, default=ProjectPriority.MEDIUM.value, choices=ProjectPriority.choices())
    company = ReferenceField(document_type=Company, required=True, null=False)
    project_lead = ReferenceField(document_type=User, required=False, null=True)
    assigned_developers = ListField(ReferenceField(document_type=User), default=list)
    created_by = ReferenceField(document_type=User, required=True, null=False)
    completed_at = DateTimeField(required=False, null=True)

    meta = {
        "collection": "projects",
        "indexes": [
            {"fields": ["company"]},
            {"fields": ["status"]},
            {"fields": ["project_lead"]},
            {"fields": ["assigned_developers"]},
        ],
    }

    @property
    def company_id(self):
        return ref_id(self._data.get("company"))

    @property
    def project_lead_id(self):
        return ref_id(self._data.get("project_lead"))

    @property
    def assigned_developer_ids(self) -> list:
        return [ref_id(ref) for ref in self._data.get("assigned_developers") or []]

