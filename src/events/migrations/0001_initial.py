import uuid

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                ("name", models.CharField(db_index=True, max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[("open", "Open"), ("closed", "Closed"), ("draft", "Draft"), ("cancelled", "Cancelled")],
                        db_index=True,
                        default="draft",
                        max_length=10,
                    ),
                ),
                ("capacity", models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ("start", models.DateTimeField(db_index=True)),
                ("end", models.DateTimeField(db_index=True)),
                (
                    "check_in_starts_at",
                    models.DateTimeField(
                        blank=True, help_text="When check-in opens for this event. Defaults to the start.", null=True
                    ),
                ),
                (
                    "check_in_ends_at",
                    models.DateTimeField(
                        blank=True, help_text="When check-in closes for this event. Defaults to the end.", null=True
                    ),
                ),
            ],
            options={
                "ordering": ["start"],
                "indexes": [models.Index(fields=["status", "start"], name="idx_event_status_start")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("capacity__gte", 1)), name="event_capacity_positive")
                ],
            },
        ),
    ]
