"""HTTP primitives: frozen request, immutable response, headers."""

from perch.http.headers import Headers
from perch.http.request import Request
from perch.http.response import Redirect, Response

__all__ = ["Headers", "Redirect", "Request", "Response"]
