from ninja_extra.throttling import AnonRateThrottle, UserRateThrottle


class AnonDefaultThrottle(AnonRateThrottle):
    rate = "60/min"


class UserDefaultThrottle(UserRateThrottle):
    rate = "100/min"


class RegistrationWriteThrottle(UserRateThrottle):
    """Register, cancel, accept and decline share one budget per user."""

    scope = "registration_write"
    rate = "30/min"


class CheckInThrottle(UserRateThrottle):
    # Door staff scan in bursts.
    scope = "check_in"
    rate = "300/min"
