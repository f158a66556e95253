from .event import Event, EventQuerySet

__all__ = [
    "Event",
    "EventQuerySet",
]
