from mongoengine import IntField, ListField, ReferenceField, StringField

from nexus.models.base import BaseDocument
from nexus.models.project import Project
from nexus.models.user import User


class Document(BaseDocument):
    """Document attachment metadata. Binary storage lives elsewhere.

    Fields:
    - project (Ref[Project]): Owning project; access follows the project
    - original_name/mimetype (str)
    - size (int): Bytes
    - description (str|None), tags (list[str])
    - uploaded_by (Ref[User])
    """
    project = ReferenceField(document_type=Project, required=True, null=False)
    original_name = StringField(required=True, null=False, max_length=255)
    mimetype = StringField(required=True, null=False)
    size = IntField(required=True, null=False, default=0, min_value=0)
    description = StringField(required=False, null=True, max_length=500)
    tags = ListField(StringField(max_length=50), default=list)
    uploaded_by = ReferenceField(document_type=User, required=True, null=False)

    meta = {
        "collection": "documents",
        "indexes": [
            {"fields": ["project"]},
        ],
    }
