import typing as t

from django.contrib.auth.models import AbstractUser
from ninja_extra import ControllerBase


class UserAwareController(ControllerBase):
    def user(self) -> AbstractUser:
        """Get the user for this request."""
        return t.cast(AbstractUser, self.context.request.user)  # type: ignore[union-attr]
