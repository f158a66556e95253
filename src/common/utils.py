import typing as t

from django.core.exceptions import ValidationError
from django.db import IntegrityError, models, transaction

T = t.TypeVar("T", bound=models.Model)


def get_or_create_with_race_protection(
    model: type[T],
    lookup_filter: models.Q,
    defaults: dict[str, t.Any],
) -> tuple[T, bool]:
    """Get or create a model instance with protection against race conditions.

    Attempts to retrieve an instance matching the lookup filter. If not found,
    creates one using the defaults. Handles IntegrityError (or the ValidationError
    raised by models that full_clean on save) from race conditions
    by retrying the lookup.

    Args:
        model: The Django model class
        lookup_filter: Q object for filtering the lookup
        defaults: Dictionary of field values for creating the instance

    Returns:
        Tuple of (instance, created) where created is True if the instance was created

    Example:
        capacity, created = get_or_create_with_race_protection(
            EventCapacity,
            Q(event_id=event.id),
            {"event_id": event.id, "capacity": event.capacity},
        )
    """
    manager: models.Manager[T] = getattr(model, "objects")
    instance = manager.filter(lookup_filter).first()
    if instance:
        return instance, False

    try:
        with transaction.atomic():
            return manager.create(**defaults), True
    except (IntegrityError, ValidationError):
        # Race condition: another request created it between our check and create
        instance = manager.filter(lookup_filter).first()
        if not instance:
            raise
        return instance, False
