from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("workforce", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1, help_text="Optimistic-lock counter, incremented on every versioned save."
                    ),
                ),
                ("title", models.CharField(max_length=200)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("published", "Published"),
                            ("assigned", "Assigned"),
                            ("completed", "Completed"),
                            ("deleted", "Deleted"),
                        ],
                        default="draft",
                        max_length=10,
                    ),
                ),
                ("check_in_instructions", models.TextField(blank=True)),
                ("total_hours_worked", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=10)),
                ("total_pay_amount", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12)),
                ("assigned_shifts_count", models.PositiveIntegerField(default=0)),
                ("total_shifts_count", models.PositiveIntegerField(default=0)),
                ("published_at_utc", models.DateTimeField(blank=True, null=True)),
                ("completed_at_utc", models.DateTimeField(blank=True, null=True)),
                ("completion_notes", models.TextField(blank=True)),
                ("created_at_utc", models.DateTimeField(auto_now_add=True)),
                ("updated_at_utc", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_events",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at_utc"],
                "indexes": [models.Index(fields=["status"], name="event_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="EventSchedule",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1, help_text="Optimistic-lock counter, incremented on every versioned save."
                    ),
                ),
                ("start_time_utc", models.DateTimeField()),
                ("end_time_utc", models.DateTimeField()),
                ("break_minutes", models.PositiveIntegerField(default=0)),
                ("created_at_utc", models.DateTimeField(auto_now_add=True)),
                ("updated_at_utc", models.DateTimeField(auto_now=True)),
                (
                    "event",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="event_schedule",
                        to="events.event",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="EventSkillRequirement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1, help_text="Optimistic-lock counter, incremented on every versioned save."
                    ),
                ),
                ("skill_name", models.CharField(max_length=100)),
                ("needed_workers", models.PositiveIntegerField(default=1)),
                (
                    "pay_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=8,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                    ),
                ),
                ("description", models.TextField(blank=True)),
                ("created_at_utc", models.DateTimeField(auto_now_add=True)),
                ("updated_at_utc", models.DateTimeField(auto_now=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="skill_requirements",
                        to="events.event",
                    ),
                ),
                (
                    "required_certification",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="skill_requirements",
                        to="workforce.certification",
                    ),
                ),
            ],
            options={
                "ordering": ["skill_name"],
                "constraints": [
                    models.UniqueConstraint(fields=("event", "skill_name"), name="unique_skill_per_event")
                ],
            },
        ),
    ]
