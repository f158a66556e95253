"""Observability utilities for TEMS."""

from .tracing import get_tracer, init_tracing

__all__ = ["get_tracer", "init_tracing"]
