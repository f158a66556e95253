"""Read-only view of the event catalog used by the registration engine.

The engine never edits events; it only needs capacity, schedule and status. The
provider is pluggable through ``settings.REGISTRATION_EVENT_CATALOG`` so the catalog
can live in another service.
"""

import typing as t
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from uuid import UUID

from django.conf import settings
from django.utils.module_loading import import_string

from events.models import Event


@dataclass(frozen=True)
class CatalogEvent:
    id: UUID
    capacity: int
    start: datetime
    end: datetime
    status: str
    check_in_starts_at: datetime | None = None
    check_in_ends_at: datetime | None = None

    def accepts_registrations(self, now: datetime) -> bool:
        """Open events that have not started yet take registrations."""
        return self.status == Event.EventStatus.OPEN and now < self.start

    def has_ended(self, now: datetime) -> bool:
        return now > self.end

    def is_check_in_open(self, now: datetime) -> bool:
        """Closing registrations does not stop check-in; only draft and cancelled events refuse it."""
        if self.status in (Event.EventStatus.DRAFT, Event.EventStatus.CANCELLED):
            return False
        return (self.check_in_starts_at or self.start) <= now <= (self.check_in_ends_at or self.end)


class EventCatalog(t.Protocol):
    def get(self, event_id: UUID) -> CatalogEvent | None:
        """Return the catalog entry for an event, or None if it is unknown."""
        ...


class DjangoEventCatalog:
    """Catalog backed by the local events table."""

    def get(self, event_id: UUID) -> CatalogEvent | None:
        event = Event.objects.filter(pk=event_id).first()
        if event is None:
            return None
        return CatalogEvent(
            id=event.id,
            capacity=event.capacity,
            start=event.start,
            end=event.end,
            status=event.status,
            check_in_starts_at=event.check_in_starts_at,
            check_in_ends_at=event.check_in_ends_at,
        )


@lru_cache(maxsize=4)
def _load_catalog(path: str) -> EventCatalog:
    return t.cast(EventCatalog, import_string(path)())


def get_event_catalog() -> EventCatalog:
    """Return the configured event catalog provider."""
    return _load_catalog(settings.REGISTRATION_EVENT_CATALOG)
