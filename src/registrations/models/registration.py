import typing as t
from datetime import datetime
from uuid import UUID

from django.conf import settings
from django.db import models

from common.models import VersionedModel


class RegistrationQuerySet(models.QuerySet["Registration"]):
    def live(self) -> t.Self:
        """Registrations that still block the user from registering again."""
        return self.exclude(status=Registration.Status.CANCELLED)

    def for_event(self, event_id: UUID) -> t.Self:
        return self.filter(event_id=event_id)

    def waitlisted(self) -> t.Self:
        """WAITLISTED registrations in promotion order."""
        return self.filter(status=Registration.Status.WAITLISTED).order_by("waitlist_position")

    def overdue_promotions(self, now: datetime) -> t.Self:
        return self.filter(status=Registration.Status.PROMOTION_PENDING, promotion_deadline__lt=now).order_by(
            "promotion_deadline"
        )

    def with_event(self) -> t.Self:
        return self.select_related("event")


class Registration(VersionedModel):
    class Status(models.TextChoices):
        REGISTERED = "registered", "Registered"
        WAITLISTED = "waitlisted", "Waitlisted"
        PROMOTION_PENDING = "promotion_pending", "Promotion pending"
        ATTENDED = "attended", "Attended"
        NO_SHOW = "no_show", "No show"
        CANCELLED = "cancelled", "Cancelled"

    class CancellationReason(models.TextChoices):
        USER = "user", "Cancelled by user"
        DECLINED = "declined", "Promotion declined"
        EXPIRED = "expired", "Promotion expired"

    event = models.ForeignKey("events.Event", on_delete=models.CASCADE, related_name="registrations")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="registrations")
    status = models.CharField(max_length=20, choices=Status.choices, db_index=True)
    waitlist_position = models.PositiveIntegerField(null=True, blank=True)
    qr_code = models.CharField(max_length=128, unique=True, editable=False)
    registered_at = models.DateTimeField()
    promotion_deadline = models.DateTimeField(null=True, blank=True, db_index=True)
    promoted_at = models.DateTimeField(null=True, blank=True)
    attended_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=10, choices=CancellationReason.choices, null=True, blank=True)
    idempotency_key = models.CharField(max_length=255, null=True, blank=True)

    objects = RegistrationQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["event", "user"],
                condition=~models.Q(status="cancelled"),
                name="unique_live_registration_per_user",
            ),
            models.UniqueConstraint(
                fields=["event", "user", "idempotency_key"],
                condition=models.Q(idempotency_key__isnull=False),
                name="unique_registration_idempotency_key",
            ),
        ]
        indexes = [
            models.Index(fields=["event", "status", "waitlist_position"], name="idx_reg_event_status_position"),
        ]
        ordering = ["registered_at"]

    def __str__(self) -> str:
        return f"Registration: {self.user_id} -> {self.event_id} ({self.status})"
