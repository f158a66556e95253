import typing as t
from datetime import timedelta

from django.core.validators import MinValueValidator
from django.db import models

from common.models import TimeStampedModel


class EventQuerySet(models.QuerySet["Event"]):
    def open(self) -> t.Self:
        """Events currently accepting registrations."""
        return self.filter(status=Event.EventStatus.OPEN)


class Event(TimeStampedModel):
    """A catalog entry: what the registration engine needs to know about an event."""

    class EventStatus(models.TextChoices):
        OPEN = "open"
        CLOSED = "closed"
        DRAFT = "draft"
        CANCELLED = "cancelled"

    name = models.CharField(max_length=255, db_index=True)
    status = models.CharField(choices=EventStatus.choices, max_length=10, default=EventStatus.DRAFT, db_index=True)
    capacity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    start = models.DateTimeField(db_index=True)
    end = models.DateTimeField(db_index=True)
    check_in_starts_at = models.DateTimeField(
        null=True, blank=True, help_text="When check-in opens for this event. Defaults to the start."
    )
    check_in_ends_at = models.DateTimeField(
        null=True, blank=True, help_text="When check-in closes for this event. Defaults to the end."
    )

    objects = EventQuerySet.as_manager()

    class Meta:
        ordering = ["start"]
        indexes = [
            models.Index(fields=["status", "start"], name="idx_event_status_start"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(capacity__gte=1), name="event_capacity_positive"),
        ]

    def save(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Override save to set default end date if not provided."""
        if self.start and not self.end:
            self.end = self.start + timedelta(days=1)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.name} ({self.start:%Y-%m-%d})"

