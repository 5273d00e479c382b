"""Middleware protocol and Next type alias.

A middleware is any callable matching::

    async def my_mw(request: Request, next: Next) -> Response: ...

No base class required. The response-timing middleware in
``perch.podlet.metrics`` and ``StaticFiles`` both follow this shape.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol

from perch.http.request import Request
from perch.http.response import Response

type Next = Callable[[Request], Awaitable[Response]]


class Middleware(Protocol):
    """Protocol for perch middleware (functions or callable objects)."""

    async def __call__(self, request: Request, next: Next) -> Response: ...
