from .capacity import EventCapacity
from .registration import Registration, RegistrationQuerySet

__all__ = [
    "EventCapacity",
    "Registration",
    "RegistrationQuerySet",
]
