"""Domain events emitted by the registration engine.

Receivers are the notification dispatcher's business. They are invoked after the
transition commits and their failures never undo it.
"""

import typing as t

import structlog
from django.dispatch import Signal, receiver

logger = structlog.get_logger(__name__)

# Expected kwargs:
#   - kind: one of registrations.service.publisher.EventKind
#   - payload: JSON-serialisable dict describing the registration after the transition
registration_event = Signal()


@receiver(registration_event)
def log_registration_event(sender: t.Any, kind: str, payload: dict[str, t.Any], **kwargs: t.Any) -> None:
    logger.info(
        "registration_event",
        kind=kind,
        registration_id=payload.get("registration_id"),
        event_id=payload.get("event_id"),
        status=payload.get("status"),
    )
