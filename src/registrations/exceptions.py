"""Named failures of the registration engine.

Every mutating operation either returns the resulting record or raises one of these;
the API maps `status_code` and `code` straight onto the response.
"""


class RegistrationError(Exception):
    """Base class for all registration engine errors."""

    status_code: int = 400
    code: str = "registration_error"
    default_detail: str = "The registration request could not be processed."

    def __init__(self, detail: str | None = None) -> None:
        """Initialize with an optional human readable detail."""
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class EventNotFound(RegistrationError):
    status_code = 404
    code = "event_not_found"
    default_detail = "Event not found."


class RegistrationNotFound(RegistrationError):
    status_code = 404
    code = "registration_not_found"
    default_detail = "Registration not found."


class AlreadyRegistered(RegistrationError):
    """Raised when a user already holds a live registration for the event."""

    status_code = 409
    code = "already_registered"
    default_detail = "You are already registered for this event."


class InvalidState(RegistrationError):
    """Raised when a registration is not in the state an operation requires."""

    status_code = 409
    code = "invalid_state"
    default_detail = "The registration is not in a state that allows this operation."


class PromotionExpired(RegistrationError):
    status_code = 410
    code = "promotion_expired"
    default_detail = "The promotion offer has expired."


class CheckInMismatch(RegistrationError):
    status_code = 400
    code = "check_in_mismatch"
    default_detail = "The presented code does not match this registration."


class EventClosed(RegistrationError):
    """Raised when the event's status or schedule does not allow the operation."""

    status_code = 400
    code = "event_closed"
    default_detail = "The event does not accept this operation at this time."


class ConcurrencyConflict(RegistrationError):
    """Raised when a version-guarded update lost a race and retries were exhausted."""

    status_code = 409
    code = "concurrency_conflict"
    default_detail = "The registration was modified concurrently. Please try again."
