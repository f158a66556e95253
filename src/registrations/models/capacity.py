from django.db import models

from common.models import VersionedModel


class EventCapacity(VersionedModel):
    """Seat ledger for one event.

    `held_seats` counts REGISTERED plus PROMOTION_PENDING registrations: seats that cannot be
    handed to anyone else. `waitlist_count` equals the number of WAITLISTED registrations and
    is also the highest waitlist position in use.
    """

    event = models.OneToOneField("events.Event", on_delete=models.CASCADE, related_name="capacity_ledger")
    capacity = models.PositiveIntegerField()
    held_seats = models.PositiveIntegerField(default=0)
    waitlist_count = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(held_seats__lte=models.F("capacity")),
                name="capacity_held_seats_within_capacity",
            ),
        ]

    def __str__(self) -> str:
        return f"Capacity {self.event_id}: {self.held_seats}/{self.capacity} (+{self.waitlist_count} waiting)"

    @property
    def available_seats(self) -> int:
        return max(self.capacity - self.held_seats, 0)

    @property
    def is_full(self) -> bool:
        return self.held_seats >= self.capacity
