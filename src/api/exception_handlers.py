"""Exception handlers for the API."""

import traceback
import typing as t

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja.responses import Response

from registrations.exceptions import RegistrationError

logger = structlog.get_logger(__name__)


def handle_general_exception(request: HttpRequest, exc: Exception | t.Type[Exception]) -> Response:
    """Handle a general exception.

    Args:
        request: The incoming HTTP request.
        exc: The exception.

    Returns:
        The response.
    """
    logger.exception("INTERNAL_SERVER_ERROR", method=request.method, path=request.path)
    data = {"code": "internal_error", "detail": "Internal Server Error."}
    is_staff = getattr(request, "user", None) and request.user.is_staff
    if settings.DEBUG or is_staff:  # pragma: no cover
        data["traceback"] = traceback.format_exc()
    return Response(status=500, data=data)


def handle_django_validation_error(request: HttpRequest, exc: ValidationError | t.Type[ValidationError]) -> Response:
    """Handle a validation error.

    Args:
        request: The incoming HTTP request.
        exc: The exception.
    """
    logger.warning("VALIDATION_ERROR", path=request.path, messages=getattr(exc, "messages", None))
    if hasattr(exc, "error_dict"):
        errors: t.Any = {k: [ee for e in v for ee in e] for k, v in exc.error_dict.items()}
    else:
        errors = {"__all__": list(getattr(exc, "messages", []))}
    return Response(status=400, data={"code": "validation_error", "detail": "Invalid data.", "errors": errors})


def handle_registration_error(request: HttpRequest, exc: RegistrationError | t.Type[RegistrationError]) -> Response:
    """Map a registration engine failure onto its HTTP status with a stable error code."""
    logger.info("registration_request_rejected", code=exc.code, status_code=exc.status_code, path=request.path)
    return Response(status=exc.status_code, data={"code": exc.code, "detail": str(exc.detail)})
