from mongoengine import BooleanField, LazyReferenceField, StringField

from nexus.models.base import BaseDocument
from nexus.utils.base import CompanySize


class Company(BaseDocument):
    """Company document; the tenancy boundary for every access decision.

    Fields:
    - name (str, unique): Display name, 2-100 characters
    - description/industry (str|None)
    - size (str): Headcount bucket
    - is_active (bool): Deactivated companies reject all sessions
    - created_by (Ref[User]): The admin who registered the company
    """
    name = StringField(required=True, null=False, unique=True, min_length=2, max_length=100)
    description = StringField(required=False, null=True, max_length=500)
    industry = StringField(required=False, null=True, max_length=50)
    size = StringField(required=True, null=False, default=CompanySize.TINY.value, choices=CompanySize.choices())
    is_active = BooleanField(required=True, null=False, default=True)
    created_by = LazyReferenceField("User", required=True, null=False)

    meta = {
        "collection": "companies",
        "indexes": [
            {"fields": ["name"], "unique": True},
            {"fields": ["is_active"]},
            {"fields": ["created_by"]},
        ],
    }

    def clean(self):
        if self.name:
            self.name = self.name.strip()
