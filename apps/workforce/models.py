"""
Workforce models: the people who staff catering shifts.

  - Certification: catalog entry (food handler, alcohol service, ...)
  - Worker: a staff member with a list of skill names
  - WorkerCertification: a worker's certificate, optionally expiring

Skills are plain strings matched against Shift.role_needed ("Server",
"Bartender"), so an event role and a worker skill are the same vocabulary.
"""

from datetime import datetime
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import models


class Certification(models.Model):
    """A certificate type that shifts may require."""

    name = models.CharField(max_length=100, unique=True)
    created_at_utc = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Worker(models.Model):
    """
    A catering staff member who can be assigned to shifts.

    Inactive workers keep their history but cannot receive new assignments.
    """

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(null=True, blank=True, unique=True)
    phone = models.CharField(max_length=20, blank=True)
    active = models.BooleanField(default=True)

    skills = models.JSONField(
        default=list,
        blank=True,
        help_text='Skill names this worker can perform, e.g. ["Server", "Bartender"].',
    )

    certifications = models.ManyToManyField(
        Certification,
        through="WorkerCertification",
        related_name="workers",
        blank=True,
    )

    created_at_utc = models.DateTimeField(auto_now_add=True)
    updated_at_utc = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["last_name", "first_name"]
        indexes = [
            models.Index(fields=["active"], name="worker_active_idx"),
        ]

    def __str__(self) -> str:
        return self.full_name

    def clean(self) -> None:
        if not isinstance(self.skills, list) or not all(isinstance(s, str) for s in self.skills):
            raise ValidationError({"skills": "Skills must be a list of skill names."})

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def has_skill(self, skill_name: str) -> bool:
        """Return True if `skill_name` is one of this worker's skills."""
        return skill_name in (self.skills or [])

    def certification_for(self, certification_id: int) -> Optional["WorkerCertification"]:
        """
        Return the worker's longest-lived certificate of the given type.

        A certificate without an expiry outlives any dated one.

        Args:
            certification_id: Primary key of the Certification.

        Returns:
            The best WorkerCertification, or None if the worker has none.
        """
        held = list(self.worker_certifications.filter(certification_id=certification_id))
        if not held:
            return None
        return max(held, key=lambda wc: (wc.expires_at_utc is None, wc.expires_at_utc or wc.created_at_utc))


class WorkerCertification(models.Model):
    """A certification held by a worker. A null expiry never expires."""

    worker = models.ForeignKey(Worker, on_delete=models.CASCADE, related_name="worker_certifications")
    certification = models.ForeignKey(
        Certification, on_delete=models.PROTECT, related_name="worker_certifications"
    )
    expires_at_utc = models.DateTimeField(null=True, blank=True)
    created_at_utc = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["worker", "certification"], name="workercert_worker_cert_idx"),
        ]

    def __str__(self) -> str:
        expiry = self.expires_at_utc.strftime("%Y-%m-%d") if self.expires_at_utc else "no expiry"
        return f"{self.worker} | {self.certification} ({expiry})"

    def is_valid_through(self, moment: datetime) -> bool:
        """Return True if the certificate is still valid at `moment`."""
        return self.expires_at_utc is None or self.expires_at_utc >= moment
