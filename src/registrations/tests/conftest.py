import typing as t
from dataclasses import dataclass

import pytest
from django.contrib.auth.models import AbstractUser

from events.models import Event
from registrations.models import Registration
from registrations.service import registration_service


@dataclass
class FullEvent:
    """An event with every seat taken and two people waiting."""

    event: Event
    registered: list[Registration]
    waitlisted: list[Registration]

    @property
    def users(self) -> list[AbstractUser]:
        return [r.user for r in self.registered + self.waitlisted]


@pytest.fixture
def full_event(event_factory: t.Any, user_factory: t.Any) -> FullEvent:
    """capacity=3, U1..U3 REGISTERED, U4@1 and U5@2 WAITLISTED."""
    event = event_factory(name="Sold Out Talk", capacity=3)
    registrations = [
        registration_service.register_for_event(event.id, user_factory(username=f"u{i}")) for i in range(1, 6)
    ]
    return FullEvent(event=event, registered=registrations[:3], waitlisted=registrations[3:])

