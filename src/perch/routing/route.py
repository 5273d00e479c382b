"""Route and RouteMatch frozen dataclasses."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class Route:
    """A frozen route definition.

    Created during startup, compiled into the router at freeze time and
    never mutated afterwards.

    ``timing`` opts the route into response-timing metrics. ``schema`` is
    an optional request-validation schema supplied by the application and
    attached as-is.
    """

    path: str
    handler: Callable[..., Any]
    methods: frozenset[str]
    name: str | None = None
    timing: bool = False
    schema: Any = None


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match."""

    route: Route
    path_params: dict[str, str]
