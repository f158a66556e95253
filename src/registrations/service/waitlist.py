"""Ordered waitlist per event.

The queue is not stored separately: it is the set of WAITLISTED registrations ordered
by `waitlist_position`. Positions always form the run 1..waitlist_count; whoever takes
an entry out of the queue compacts the positions behind it in the same transaction.
"""

from uuid import UUID

import structlog
from django.db.models import F
from django.utils import timezone

from registrations.models import Registration, RegistrationQuerySet

logger = structlog.get_logger(__name__)


def entries(event_id: UUID) -> RegistrationQuerySet:
    return Registration.objects.for_event(event_id).waitlisted()


def head(event_id: UUID) -> Registration | None:
    """The entry at position 1, if any."""
    return entries(event_id).first()


def compact(event_id: UUID, removed_position: int) -> int:
    """Close the gap left by the entry that held `removed_position`.

    Every waitlisted registration behind it moves up by exactly one. Their versions are
    bumped too, so anyone holding a stale copy of those rows has to re-read them.

    Returns:
        The number of entries that moved.
    """
    moved = entries(event_id).filter(waitlist_position__gt=removed_position).update(
        waitlist_position=F("waitlist_position") - 1,
        version=F("version") + 1,
        updated_at=timezone.now(),
    )
    logger.debug("waitlist_compacted", event_id=str(event_id), removed_position=removed_position, moved=moved)
    return moved


def positions(event_id: UUID) -> list[int]:
    return list(entries(event_id).values_list("waitlist_position", flat=True))
