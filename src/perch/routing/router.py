"""Compiled router for static podlet paths.

Podlet routes are fixed at startup (manifest, content, fallback, the
development redirect), so matching is a dict lookup on the normalized
path. Trailing slashes are not significant: ``/cart`` and ``/cart/``
are the same route.
"""

from perch.errors import MethodNotAllowed, NotFound
from perch.routing.route import Route, RouteMatch


def normalize_path(path: str) -> str:
    """Collapse duplicate slashes and drop the trailing slash.

    ``"//cart/"`` -> ``"/cart"``; ``""`` and ``"/"`` -> ``"/"``
    """
    parts = [part for part in path.split("/") if part]
    return "/" + "/".join(parts)


class Router:
    """Static path router.

    Usage::

        router = Router()
        router.add(Route("/cart/manifest.json", handler, frozenset({"GET"})))
        router.compile()
        match = router.match("GET", "/cart/manifest.json")
    """

    __slots__ = ("_compiled", "_routes")

    def __init__(self) -> None:
        self._routes: dict[str, dict[str, Route]] = {}
        self._compiled = False

    def add(self, route: Route) -> None:
        """Add a route. Must be called before compile()."""
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        by_method = self._routes.setdefault(normalize_path(route.path), {})
        for method in route.methods:
            if method in by_method:
                msg = f"Duplicate route: {method} {route.path}"
                raise RuntimeError(msg)
            by_method[method] = route
        # HEAD is answered by GET handlers
        if "GET" in route.methods:
            by_method.setdefault("HEAD", route)

    @property
    def routes(self) -> list[Route]:
        """Every registered route, in registration order."""
        seen: set[int] = set()
        result: list[Route] = []
        for by_method in self._routes.values():
            for route in by_method.values():
                if id(route) not in seen:
                    seen.add(id(route))
                    result.append(route)
        return result

    def compile(self) -> None:
        """Freeze the router. No more routes can be added."""
        self._compiled = True

    def match(self, method: str, path: str) -> RouteMatch:
        """Match a request against the compiled routes.

        Raises ``NotFound`` if no route has this path and
        ``MethodNotAllowed`` if the path exists for other methods only.
        """
        by_method = self._routes.get(normalize_path(path))
        if not by_method:
            raise NotFound(f"No route matches {method} {path!r}")
        route = by_method.get(method)
        if route is None:
            raise MethodNotAllowed(frozenset(by_method))
        return RouteMatch(route=route, path_params={})
