import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ActivityLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("entity_type", models.CharField(max_length=50)),
                ("entity_id", models.PositiveBigIntegerField(blank=True, null=True)),
                ("action", models.CharField(db_index=True, max_length=50)),
                ("before_json", models.JSONField(blank=True, null=True)),
                ("after_json", models.JSONField(blank=True, null=True)),
                ("note", models.TextField(blank=True)),
                ("created_at_utc", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="activity_logs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Activity Log Entry",
                "verbose_name_plural": "Activity Log",
                "ordering": ["-created_at_utc", "-id"],
                "indexes": [
                    models.Index(fields=["entity_type", "entity_id"], name="activity_entity_idx"),
                    models.Index(fields=["actor", "-created_at_utc"], name="activity_actor_created_idx"),
                ],
            },
        ),
    ]
