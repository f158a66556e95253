import typing as t
import uuid

from django.db import models


class TimeStampedModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    class Meta:
        abstract = True

    def save(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Override the save method to call full_clean before saving."""
        self.full_clean()
        super().save(*args, **kwargs)


class VersionedModel(TimeStampedModel):
    """A model whose rows are only ever changed through version-guarded updates.

    `version` starts at 1 and is bumped by every conditional update. Writers read a row,
    decide, then update `WHERE pk = ? AND version = ?`; a zero row count means somebody
    else got there first.
    """

    version = models.PositiveIntegerField(default=1, editable=False)

    class Meta:
        abstract = True
