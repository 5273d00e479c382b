"""Perch: a podlet server for server-rendered web components.

Serves a podlet (a self-describing UI fragment) over HTTP: a manifest,
a content route, and an optional fallback route, each rendered
server side, client side, or hydrated.

A podlet project::

    pyproject.toml      [project].name becomes app.name
    content.py          the content component
    fallback.py         optional fallback component
    server.py           optional ``server(podlet_server)`` hook
    config/common.json  optional configuration

Run it::

    perch run

Or build it in code::

    from perch import create_server

    server = create_server("path/to/project")
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "Component",
    "CompileError",
    "ConfigurationError",
    "HTTPError",
    "MethodNotAllowed",
    "NotFound",
    "PerchError",
    "PodletConfig",
    "PodletServer",
    "Redirect",
    "Request",
    "Response",
    "create_server",
    "load_config",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "App":
        from perch.app import App

        return App

    if name in ("PodletConfig", "load_config"):
        from perch import config as _config

        return getattr(_config, name)

    if name == "Request":
        from perch.http.request import Request

        return Request

    if name in ("Response", "Redirect"):
        from perch.http import response as _resp

        return getattr(_resp, name)

    if name == "Component":
        from perch.podlet.components import Component

        return Component

    if name in ("PodletServer", "create_server"):
        from perch.podlet import server as _server

        return getattr(_server, name)

    if name in (
        "CompileError",
        "ConfigurationError",
        "HTTPError",
        "MethodNotAllowed",
        "NotFound",
        "PerchError",
    ):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
