import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("events", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="EventCapacity",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                ("version", models.PositiveIntegerField(default=1, editable=False)),
                ("capacity", models.PositiveIntegerField()),
                ("held_seats", models.PositiveIntegerField(default=0)),
                ("waitlist_count", models.PositiveIntegerField(default=0)),
                (
                    "event",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="capacity_ledger",
                        to="events.event",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("held_seats__lte", models.F("capacity"))),
                        name="capacity_held_seats_within_capacity",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Registration",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                ("version", models.PositiveIntegerField(default=1, editable=False)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("registered", "Registered"),
                            ("waitlisted", "Waitlisted"),
                            ("promotion_pending", "Promotion pending"),
                            ("attended", "Attended"),
                            ("no_show", "No show"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        max_length=20,
                    ),
                ),
                ("waitlist_position", models.PositiveIntegerField(blank=True, null=True)),
                ("qr_code", models.CharField(editable=False, max_length=128, unique=True)),
                ("registered_at", models.DateTimeField()),
                ("promotion_deadline", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("promoted_at", models.DateTimeField(blank=True, null=True)),
                ("attended_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "cancellation_reason",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("user", "Cancelled by user"),
                            ("declined", "Promotion declined"),
                            ("expired", "Promotion expired"),
                        ],
                        max_length=10,
                        null=True,
                    ),
                ),
                ("idempotency_key", models.CharField(blank=True, max_length=255, null=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="registrations",
                        to="events.event",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="registrations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["registered_at"],
                "indexes": [
                    models.Index(
                        fields=["event", "status", "waitlist_position"], name="idx_reg_event_status_position"
                    )
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "cancelled"), _negated=True),
                        fields=("event", "user"),
                        name="unique_live_registration_per_user",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("idempotency_key__isnull", False)),
                        fields=("event", "user", "idempotency_key"),
                        name="unique_registration_idempotency_key",
                    ),
                ],
            },
        ),
    ]
