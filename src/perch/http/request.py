"""Immutable HTTP request.

Frozen metadata with async body access. Built once per ASGI call by
the handler; route handlers and state providers receive the same object.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl

from perch._internal.asgi import Receive
from perch.http.headers import Headers

if TYPE_CHECKING:
    from perch.routing.route import Route


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata is frozen at creation. The body is read lazily through
    ``body()`` / ``json()`` / ``text()`` and cached after the first read.
    """

    method: str
    path: str
    headers: Headers
    query: Mapping[str, str]
    path_params: dict[str, str]
    http_version: str
    client: tuple[str, int] | None

    _receive: Receive

    # Shared between the outer request seen by middleware and the routed
    # copy given to the handler, so per-request facts set during dispatch
    # (body, matched route) are visible to both.
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def route(self) -> Route | None:
        """The route this request was dispatched to, once routing has run."""
        return self._cache.get("route")

    async def body(self) -> bytes:
        """Read the full request body (cached)."""
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks = [chunk async for chunk in self.stream()]
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        while True:
            message = await self._receive()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def json(self) -> Any:
        import json as json_module

        return json_module.loads(await self.body())

    async def text(self) -> str:
        return (await self.body()).decode("utf-8")

    def routed(self, route: Route, path_params: dict[str, str]) -> Request:
        """Copy of this request bound to a matched route."""
        self._cache["route"] = route
        return Request(
            method=self.method,
            path=self.path,
            headers=self.headers,
            query=self.query,
            path_params=path_params,
            http_version=self.http_version,
            client=self.client,
            _receive=self._receive,
            _cache=self._cache,
        )

    @classmethod
    def from_asgi(cls, scope: Mapping[str, Any], receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        client = scope.get("client")
        query_string = scope.get("query_string", b"").decode("latin-1")
        return cls(
            method=scope["method"],
            path=scope["path"],
            headers=Headers(tuple(scope.get("headers", ()))),
            query=dict(parse_qsl(query_string, keep_blank_values=True)),
            path_params={},
            http_version=scope.get("http_version", "1.1"),
            client=tuple(client) if client else None,
            _receive=receive,
        )
