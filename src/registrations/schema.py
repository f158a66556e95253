from uuid import UUID

from ninja import ModelSchema, Schema
from pydantic import Field

from registrations.models import Registration


class RegistrationSchema(ModelSchema):
    """A registration as seen by its owner, check-in code included."""

    id: UUID
    event_id: UUID
    user_id: int
    status: Registration.Status
    cancellation_reason: Registration.CancellationReason | None = None

    class Meta:
        model = Registration
        fields = [
            "id",
            "waitlist_position",
            "qr_code",
            "registered_at",
            "promotion_deadline",
            "promoted_at",
            "attended_at",
            "cancelled_at",
            "version",
            "created_at",
            "updated_at",
        ]


class WaitlistEntrySchema(ModelSchema):
    """A waitlisted registration in staff views."""

    id: UUID
    event_id: UUID
    user_id: int
    username: str = Field(alias="user.username")

    class Meta:
        model = Registration
        fields = ["id", "waitlist_position", "registered_at"]


class CapacitySchema(Schema):
    event_id: UUID
    capacity: int
    held_seats: int
    waitlist_count: int
    available_seats: int
    is_full: bool


class CheckInSchema(Schema):
    code: str = Field(..., min_length=1, max_length=128)

