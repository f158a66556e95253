"""Common middleware for TEMS."""

from .observability import StructlogContextMiddleware

__all__ = ["StructlogContextMiddleware"]
