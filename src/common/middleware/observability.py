"""Observability middleware for context enrichment."""

import typing as t
import uuid

import structlog
from django.http import HttpRequest, HttpResponse
from opentelemetry import trace


class StructlogContextMiddleware:
    """Enriches structlog context with request metadata.

    Binds request-level context (request_id, user_id, path) to all log events
    emitted while the request is handled, so engine logs can be traced back to a call.
    """

    def __init__(self, get_response: t.Callable[[HttpRequest], HttpResponse]) -> None:
        """Initialize middleware."""
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        """Process request and bind context."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()

        context: dict[str, t.Any] = {
            "request_id": request_id,
            "method": request.method,
            "path": request.path,
        }

        span = trace.get_current_span()
        if span and span.get_span_context().is_valid:
            context["trace_id"] = format(span.get_span_context().trace_id, "032x")

        if hasattr(request, "user") and request.user.is_authenticated:
            context["user_id"] = str(request.user.pk)

        structlog.contextvars.bind_contextvars(**context)

        response = self.get_response(request)
        response["X-Request-ID"] = request_id

        structlog.contextvars.clear_contextvars()

        return response
