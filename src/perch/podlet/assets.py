"""Resolve logical asset paths to public URLs.

Client bundles are built into ``dist/`` (served under ``/static`` in
development) or published to a CDN. The resolver turns a logical path
such as ``/client/content.js`` into the URL the browser should load.
"""


class AssetResolver:
    """Joins logical asset paths onto a base path or URL.

    Usage::

        assets = AssetResolver("https://cdn.example.com/cart/1.0.0")
        assets.resolve("/client/content.js")
        # "https://cdn.example.com/cart/1.0.0/client/content.js"
    """

    __slots__ = ("base",)

    def __init__(self, base: str = "/static") -> None:
        self.base = base.rstrip("/")

    def resolve(self, path: str) -> str:
        return f"{self.base}/{path.lstrip('/')}"
