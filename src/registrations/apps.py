from django.apps import AppConfig


class RegistrationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "registrations"

    def ready(self) -> None:
        """Connect the domain event receivers."""
        from registrations import signals  # noqa: F401
