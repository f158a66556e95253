"""Authoritative seat bookkeeping per event.

The ledger row is the only shared counter in the system. Every change goes through
`conditional_update`, so two requests racing for the last seat cannot both win:
the loser's update matches zero rows and its operation is retried from scratch.
"""

import enum
import typing as t
from dataclasses import dataclass
from uuid import UUID

import structlog
from django.db.models import Q

from common.utils import get_or_create_with_race_protection
from events.catalog import get_event_catalog
from registrations.exceptions import EventNotFound, InvalidState
from registrations.models import EventCapacity

from .concurrency import conditional_update

logger = structlog.get_logger(__name__)


class ReservationOutcome(enum.StrEnum):
    RESERVED = "reserved"
    WAITLISTED = "waitlisted"


@dataclass(frozen=True)
class Reservation:
    outcome: ReservationOutcome
    waitlist_position: int | None = None

    @property
    def is_reserved(self) -> bool:
        return self.outcome == ReservationOutcome.RESERVED


@dataclass(frozen=True)
class CapacitySnapshot:
    event_id: UUID
    capacity: int
    held_seats: int
    waitlist_count: int

    @property
    def available_seats(self) -> int:
        return max(self.capacity - self.held_seats, 0)

    @property
    def is_full(self) -> bool:
        return self.held_seats >= self.capacity

    def as_dict(self) -> dict[str, t.Any]:
        return {
            "event_id": self.event_id,
            "capacity": self.capacity,
            "held_seats": self.held_seats,
            "waitlist_count": self.waitlist_count,
            "available_seats": self.available_seats,
            "is_full": self.is_full,
        }


def get_ledger(event_id: UUID) -> EventCapacity:
    """Load the ledger row for an event, creating it from the catalog on first use.

    Raises:
        EventNotFound: The catalog does not know the event.
    """
    ledger = EventCapacity.objects.filter(event_id=event_id).first()
    if ledger is not None:
        return ledger

    catalog_event = get_event_catalog().get(event_id)
    if catalog_event is None:
        raise EventNotFound()
    ledger, created = get_or_create_with_race_protection(
        EventCapacity,
        Q(event_id=event_id),
        {"event_id": event_id, "capacity": catalog_event.capacity},
    )
    if created:
        logger.info("capacity_ledger_created", event_id=str(event_id), capacity=ledger.capacity)
    return ledger


def reserve(event_id: UUID) -> Reservation:
    """Take a seat if one is free and nobody is waiting, otherwise take the next waitlist position.

    The returned position is the new `waitlist_count`, assigned under the same
    conditional update that incremented it.
    """
    ledger = get_ledger(event_id)
    if ledger.held_seats < ledger.capacity and ledger.waitlist_count == 0:
        conditional_update(ledger, held_seats=ledger.held_seats + 1)
        return Reservation(ReservationOutcome.RESERVED)

    position = ledger.waitlist_count + 1
    conditional_update(ledger, waitlist_count=position)
    return Reservation(ReservationOutcome.WAITLISTED, waitlist_position=position)


def release(event_id: UUID) -> bool:
    """Give back one held seat.

    Returns:
        True if a seat actually became free, False if nothing was held.
    """
    ledger = get_ledger(event_id)
    if ledger.held_seats == 0:
        logger.warning("capacity_release_without_held_seat", event_id=str(event_id))
        return False
    conditional_update(ledger, held_seats=ledger.held_seats - 1)
    return True


def hold_for_promotion(ledger: EventCapacity) -> EventCapacity:
    """Move one entry off the waitlist and onto a held seat for its promotion offer.

    `ledger` must be the copy read before the queue was touched, so a waitlist join that
    committed in between fails the version guard instead of leaving a gap.
    """
    if ledger.held_seats >= ledger.capacity or ledger.waitlist_count == 0:
        raise InvalidState("No free seat or no waitlisted registration to promote.")
    return conditional_update(
        ledger,
        held_seats=ledger.held_seats + 1,
        waitlist_count=ledger.waitlist_count - 1,
    )


def leave_waitlist(ledger: EventCapacity) -> EventCapacity:
    """Account for a waitlisted registration that left the queue without a seat.

    Same contract as `hold_for_promotion`: pass the ledger as read before compaction.
    """
    if ledger.waitlist_count == 0:
        raise InvalidState("The waitlist is already empty.")
    return conditional_update(ledger, waitlist_count=ledger.waitlist_count - 1)


def snapshot(event_id: UUID) -> CapacitySnapshot:
    ledger = get_ledger(event_id)
    return CapacitySnapshot(
        event_id=event_id,
        capacity=ledger.capacity,
        held_seats=ledger.held_seats,
        waitlist_count=ledger.waitlist_count,
    )
