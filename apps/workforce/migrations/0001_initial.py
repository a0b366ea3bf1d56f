import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Certification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100, unique=True)),
                ("created_at_utc", models.DateTimeField(auto_now_add=True)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Worker",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("first_name", models.CharField(max_length=100)),
                ("last_name", models.CharField(max_length=100)),
                ("email", models.EmailField(blank=True, max_length=254, null=True, unique=True)),
                ("phone", models.CharField(blank=True, max_length=20)),
                ("active", models.BooleanField(default=True)),
                (
                    "skills",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text='Skill names this worker can perform, e.g. ["Server", "Bartender"].',
                    ),
                ),
                ("created_at_utc", models.DateTimeField(auto_now_add=True)),
                ("updated_at_utc", models.DateTimeField(auto_now=True)),
            ],
            options={"ordering": ["last_name", "first_name"]},
        ),
        migrations.CreateModel(
            name="WorkerCertification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("expires_at_utc", models.DateTimeField(blank=True, null=True)),
                ("created_at_utc", models.DateTimeField(auto_now_add=True)),
                (
                    "certification",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="worker_certifications",
                        to="workforce.certification",
                    ),
                ),
                (
                    "worker",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="worker_certifications",
                        to="workforce.worker",
                    ),
                ),
            ],
        ),
        migrations.AddField(
            model_name="worker",
            name="certifications",
            field=models.ManyToManyField(
                blank=True,
                related_name="workers",
                through="workforce.WorkerCertification",
                to="workforce.certification",
            ),
        ),
        migrations.AddIndex(
            model_name="worker",
            index=models.Index(fields=["active"], name="worker_active_idx"),
        ),
        migrations.AddIndex(
            model_name="workercertification",
            index=models.Index(fields=["worker", "certification"], name="workercert_worker_cert_idx"),
        ),
    ]
