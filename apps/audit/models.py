"""
Activity log models for the staffing engine.

Every staffing state transition is logged immutably. Logs record who did
what, to which entity, when, and what the before/after state was. Logs are
never updated or deleted.

The log is written atomically with the operation (same DB transaction)
so there is no window where a change exists without an audit record.
"""

from django.conf import settings
from django.db import models


class ActivityLog(models.Model):
    """
    Immutable record of a state transition.

    `entity_type` is the model name ("Assignment", "Shift", "Event", ...),
    `entity_id` its primary key. The before/after snapshots are key-ordered
    maps of primitive values produced by apps.audit.writer.snapshot, enough
    for the presentation layer to render a diff.

    Action strings used by the engine:
      - "created", "unassigned", "cancelled", "no_show", "hours_updated"
      - "deleted" (shift removed by a role diff)
      - "published", "completed", "roles_updated", "bulk_approved"
      - "shift_times_synced", "totals_recalculated"
      - "requirement_pay_rate_cascade"
    """

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="activity_logs",
    )

    entity_type = models.CharField(max_length=50)
    entity_id = models.PositiveBigIntegerField(null=True, blank=True)
    action = models.CharField(max_length=50, db_index=True)

    before_json = models.JSONField(null=True, blank=True)
    after_json = models.JSONField(null=True, blank=True)

    # Optional human-readable context (e.g. the reason for a forced unassign)
    note = models.TextField(blank=True)

    created_at_utc = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = "Activity Log Entry"
        verbose_name_plural = "Activity Log"
        ordering = ["-created_at_utc", "-id"]
        indexes = [
            models.Index(fields=["entity_type", "entity_id"], name="activity_entity_idx"),
            models.Index(fields=["actor", "-created_at_utc"], name="activity_actor_created_idx"),
        ]

    def __str__(self) -> str:
        """Return a short summary of the log entry."""
        actor_name = self.actor.email if self.actor else "System"
        return f"[{self.created_at_utc:%Y-%m-%d %H:%M}] {actor_name} | {self.entity_type}#{self.entity_id} {self.action}"

    def save(self, *args, **kwargs):
        """
        Override save to enforce immutability: log entries cannot be updated.

        Raises:
            RuntimeError: If attempting to update an existing entry.
        """
        if self.pk:
            raise RuntimeError("ActivityLog entries are immutable and cannot be updated.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise RuntimeError("ActivityLog entries are immutable and cannot be deleted.")
