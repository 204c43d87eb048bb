"""
Core models for ClientDesk.
Provides BaseModel with UUID primary keys and timestamp fields.
"""
import uuid
from django.db import models


class BaseModel(models.Model):
    """
    Abstract base model with UUID primary key and timestamps.

    Every ClientDesk model inherits from this base model. Rows are
    hard-deleted; history that must survive deletion lives in the
    RBAC audit log instead.
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier"
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when the record was created"
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        db_index=True,
        help_text="Timestamp when the record was last updated"
    )

    class Meta:
        abstract = True
        ordering = ['-created_at']

    def snapshot(self, exclude=()):
        """
        Return a JSON-safe dict of concrete field values.

        Used for audit log before/after payloads. Foreign keys are
        rendered under their `<name>_id` attribute.
        """
        data = {}
        for field in self._meta.concrete_fields:
            if field.attname in exclude or field.name in exclude:
                continue
            value = getattr(self, field.attname)
            if isinstance(value, uuid.UUID):
                value = str(value)
            elif hasattr(value, 'isoformat'):
                value = value.isoformat()
            data[field.attname] = value
        return data
