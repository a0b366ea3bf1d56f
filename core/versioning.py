"""
Optimistic locking for models edited concurrently by several managers.

Every versioned row carries a monotonically increasing `version`. An update
is a single compare-and-increment statement:

    UPDATE ... SET ..., version = version + 1 WHERE id = %s AND version = %s

If no row matched, somebody else saved first and StaleObjectError is raised
so the caller can reload and retry (a 409 at the HTTP layer). Concurrent
edits are never silently overwritten.

Derived-value refreshes (event totals) bypass this: they use a
plain queryset update and leave `version` untouched.
"""

import logging

from django.db import models
from django.db.models import F

from core.exceptions import DomainError, ErrorKind

logger = logging.getLogger(__name__)


class StaleObjectError(DomainError):
    """The row was modified by another transaction since it was loaded."""

    kind = ErrorKind.STALE_OBJECT

    def __init__(self, instance: models.Model):
        self.model_name = instance.__class__.__name__
        self.pk = instance.pk
        super().__init__(
            f"This {self.model_name} was modified by another user. Please refresh and try again.",
            data={"entity_type": self.model_name, "entity_id": instance.pk},
        )


class VersionedModel(models.Model):
    """Abstract base adding an optimistic-lock `version` column."""

    version = models.PositiveIntegerField(
        default=1,
        help_text="Optimistic-lock counter, incremented on every versioned save.",
    )

    class Meta:
        abstract = True

    def check_version(self, expected_version) -> None:
        """
        Raise StaleObjectError if the caller edited an older copy of this row.

        Args:
            expected_version: The version the caller loaded, or None to skip.
        """
        if expected_version is not None and int(expected_version) != self.version:
            raise StaleObjectError(self)

    def save_versioned(self, update_fields: list[str]) -> None:
        """
        Persist `update_fields` only if the stored version still matches.

        Runs full_clean first so validation errors are raised before any
        write. On success the in-memory version is bumped to match the row.

        Args:
            update_fields: Names of the concrete fields to write.

        Raises:
            ValidationError: If the instance is invalid.
            StaleObjectError: If another transaction saved first.
        """
        self.full_clean()

        values = {}
        for name in update_fields:
            attname = self._meta.get_field(name).attname
            values[attname] = getattr(self, attname)
        for field in self._meta.concrete_fields:
            # auto_now timestamps are not refreshed by queryset updates
            if getattr(field, "auto_now", False):
                values[field.attname] = field.pre_save(self, add=False)

        matched = (
            self.__class__.objects.filter(pk=self.pk, version=self.version)
            .update(version=F("version") + 1, **values)
        )
        if matched == 0:
            logger.info(
                "Stale write rejected for %s id=%s at version=%s",
                self.__class__.__name__,
                self.pk,
                self.version,
            )
            raise StaleObjectError(self)

        self.version += 1
