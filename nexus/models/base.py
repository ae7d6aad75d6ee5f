from datetime import datetime, timezone
from typing import Any
from bson.dbref import DBRef
from bson.objectid import ObjectId
from mongoengine import Document, DictField, DateTimeField, EmbeddedDocument


class BaseDocumentMixin:
    # Fields never rendered by to_output() unless explicitly requested.
    hidden_fields: tuple[str, ...] = ()

    def _sanitize_value(self, value: Any, expand: bool = False) -> Any:
        if isinstance(value, Document):
            if expand and hasattr(value, "to_output"):
                return value.to_output()
            return str(value.id)
        elif isinstance(value, DBRef):
            return str(value.id)
        elif isinstance(value, EmbeddedDocument):
            value = {k: self._sanitize_value(getattr(value, k)) for k in value._fields}
        if isinstance(value, list):
            return [self._sanitize_value(v, expand) for v in value]
        if isinstance(value, dict):
            return {k: self._sanitize_value(v) for k, v in value.items()}
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return value.isoformat()
        if isinstance(value, ObjectId):
            return str(value)
        return value

    def to_output(self, fields=None, exclude=None, expand=None):
        """Serialize to a JSON-safe dict.

        References render as id strings; names listed in ``expand`` render as
        the referenced document's own output instead (one level deep).
        """
        data: dict[str, Any] = {}
        exclude = set(exclude or []) | set(self.hidden_fields)
        expand = set(expand or [])
        fields = fields or self._fields.keys()

        for field in fields:
            if field in exclude or field == "id":
                continue
            value = getattr(self, field)
            data[field] = self._sanitize_value(value, expand=field in expand)

        data["id"] = str(self.id)
        return data

    def to_dict(self, fields=None, exclude=None, expand=None):
        return self.to_output(fields=fields, exclude=exclude, expand=expand)


class BaseEmbeddedDocument(EmbeddedDocument, BaseDocumentMixin):
    meta = {
        "abstract": True,
    }


class BaseDocument(Document, BaseDocumentMixin):
    metadata = DictField(default=dict, null=False)
    created_at = DateTimeField(default=lambda: datetime.now(timezone.utc), null=False)
    updated_at = DateTimeField(default=lambda: datetime.now(timezone.utc), null=False)

    meta = {
        "abstract": True,
    }

    def save(self, *args, **kwargs):
        self.updated_at = datetime.now(timezone.utc)
        return super().save(*args, **kwargs)


def ref_id(value):
    """Id behind a stored reference without dereferencing it."""
    if value is None:
        return None
    return getattr(value, "id", value)
