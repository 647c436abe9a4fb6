"""
Reusable model mixins.

Mixins:
    UUIDPrimaryKeyMixin: UUID as primary key instead of auto-increment
    VersionedMixin: Integer version bumped atomically on every save

Usage:
    from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
    from core.models import BaseModel

    class Withdrawal(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
        ...
"""

from __future__ import annotations

import uuid

from django.db import models
from django.db.models import F


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Provider payloads and ledger references carry these ids, so they must
    be non-guessable and safe to generate before the row is inserted.

    Fields:
        id: UUIDField as primary key (auto-generated)
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class VersionedMixin(models.Model):
    """
    Optimistic-concurrency counter.

    Every save() of an existing row increments ``version`` with an F()
    expression so concurrent writers never lose an increment, then reloads
    the value so the in-memory instance stays usable.

    Fields:
        version: Monotonic counter starting at 1

    Usage:
        withdrawal.complete()
        withdrawal.save()
        withdrawal.version  # previous value + 1
    """

    version = models.PositiveIntegerField(
        default=1,
        help_text="Optimistic locking version, incremented on each update",
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        """Increment version on update, leave it at its default on insert."""
        if not self._state.adding:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None:
                kwargs["update_fields"] = list({*update_fields, "version"})
        super().save(*args, **kwargs)
        if not isinstance(self.version, int):
            self.refresh_from_db(fields=["version"])
