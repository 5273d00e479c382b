"""The podlet protocol object: manifest, paths, request context.

A ``Podlet`` describes one podlet to a composing layout server: its name,
version, route paths, proxy entries, and assets. It serializes to the
manifest JSON, parses the ``podium-*`` request headers a layout sends
into a ``PodiumContext``, and wraps fragments into a standalone page
when running in development.
"""

from __future__ import annotations

import html
from collections.abc import Iterator, Mapping
from typing import Any

from perch.http.request import Request
from perch.podlet.metrics import MetricStream

CONTEXT_HEADER_PREFIX = "podium-"

# Major version of the podium protocol this podlet speaks.
PODIUM_VERSION = 5


class PodiumContext(Mapping[str, str]):
    """Read-only request context sent by the layout server.

    Built from ``podium-*`` headers with the prefix removed, e.g.
    ``podium-locale`` -> ``context["locale"]``.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values = dict(values or {})

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"PodiumContext({self._values!r})"

    @property
    def locale(self) -> str | None:
        return self._values.get("locale")

    @property
    def debug(self) -> bool:
        return self._values.get("debug") == "true"

    @property
    def mount_origin(self) -> str | None:
        return self._values.get("mount-origin")

    @property
    def public_pathname(self) -> str | None:
        return self._values.get("public-pathname")


class Podlet:
    """Protocol descriptor for one podlet.

    Usage::

        podlet = Podlet(name="cart", version="1.0.0", fallback="/fallback")
        podlet.manifest()        # "/manifest.json"
        podlet.to_dict()         # manifest JSON payload
    """

    __slots__ = (
        "_content",
        "_css",
        "_fallback",
        "_js",
        "_manifest",
        "_proxy",
        "development",
        "metrics",
        "name",
        "pathname",
        "version",
    )

    def __init__(
        self,
        *,
        name: str,
        version: str,
        pathname: str = "/",
        manifest: str = "/manifest.json",
        content: str = "/",
        fallback: str = "",
        development: bool = False,
    ) -> None:
        self.name = name
        self.version = version
        self.pathname = pathname
        self.development = development
        self._manifest = manifest
        self._content = content
        self._fallback = fallback
        self._proxy: dict[str, str] = {}
        self._js: list[dict[str, Any]] = []
        self._css: list[dict[str, Any]] = []
        self.metrics = MetricStream("podlet")

    # -- Paths --

    def manifest(self) -> str:
        return self._manifest

    def content(self) -> str:
        return self._content

    def fallback(self) -> str:
        return self._fallback

    # -- Manifest entries --

    def proxy(self, target: str, name: str) -> str:
        """Declare a proxy entry; returns the public path the layout exposes."""
        if name in self._proxy:
            msg = f"Proxy name {name!r} is already registered"
            raise ValueError(msg)
        self._proxy[name] = target
        return f"/podium-resource/{self.name}/{name}"

    def js(self, value: str, *, type: str = "module") -> None:  # noqa: A002 — manifest field name
        self._js.append({"value": value, "type": type})

    def css(self, value: str) -> None:
        self._css.append({"value": value, "type": "text/css"})

    def to_dict(self) -> dict[str, Any]:
        """The manifest payload served on the manifest route."""
        return {
            "name": self.name,
            "version": self.version,
            "content": self._content,
            "fallback": self._fallback,
            "js": list(self._js),
            "css": list(self._css),
            "proxy": dict(self._proxy),
            "team": "",
        }

    # -- Requests --

    def context(self, request: Request) -> PodiumContext:
        """Parse the podium context for *request*.

        In development there is no layout server in front of the podlet,
        so missing keys are filled with local defaults.
        """
        values = request.headers.with_prefix(CONTEXT_HEADER_PREFIX)
        if self.development:
            host = request.headers.get("host", "localhost")
            defaults = {
                "debug": "true",
                "locale": "en-US",
                "device-type": "desktop",
                "requested-by": self.name,
                "mount-origin": f"http://{host}",
                "mount-pathname": self.pathname,
                "public-pathname": f"/podium-resource/{self.name}",
            }
            values = {**defaults, **values}
        return PodiumContext(values)

    def wrap(self, fragment: str, context: PodiumContext | None = None) -> str:
        """Return *fragment* as it should be sent.

        In development the fragment is wrapped in a minimal document so
        the podlet can be opened directly in a browser.
        """
        if not self.development:
            return fragment
        locale = (context.locale if context else None) or "en-US"
        css = "".join(
            f'<link rel="stylesheet" href="{html.escape(entry["value"])}">' for entry in self._css
        )
        js = "".join(
            f'<script type="{entry["type"]}" src="{html.escape(entry["value"])}"></script>'
            for entry in self._js
        )
        return (
            f'<!doctype html><html lang="{html.escape(locale)}"><head>'
            f'<meta charset="utf-8"><title>{html.escape(self.name)}</title>{css}</head>'
            f"<body>{fragment}{js}</body></html>"
        )
