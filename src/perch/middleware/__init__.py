"""Middleware protocol and built-in middleware."""

from perch.middleware.protocol import Middleware, Next
from perch.middleware.static import StaticFiles

__all__ = ["Middleware", "Next", "StaticFiles"]
