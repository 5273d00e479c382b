"""Static file serving middleware.

Used in development to serve the project's ``dist`` directory (client
bundles referenced by the asset resolver) under ``/static``. Paths
outside the prefix fall through to the next handler.
"""

import mimetypes
from pathlib import Path

from perch.http.request import Request
from perch.http.response import Response
from perch.middleware.protocol import Next


class StaticFiles:
    """Middleware that serves files from a directory under a URL prefix.

    Resolves symlinks and verifies the final path is inside the
    configured directory to prevent path traversal.

    Usage::

        app.add_middleware(StaticFiles(directory="dist", prefix="/static"))
    """

    __slots__ = ("_cache_control", "_directory", "_prefix")

    def __init__(
        self,
        directory: str | Path,
        prefix: str = "/static",
        *,
        cache_control: str = "no-cache",
    ) -> None:
        self._directory = Path(directory).resolve()
        self._cache_control = cache_control
        self._prefix = "/" + prefix.strip("/")

    async def __call__(self, request: Request, next: Next) -> Response:
        if request.method not in ("GET", "HEAD"):
            return await next(request)

        path = request.path
        if not path.startswith(self._prefix + "/"):
            return await next(request)

        relative = path[len(self._prefix) :].lstrip("/")
        file_path = (self._directory / relative).resolve()
        if not file_path.is_relative_to(self._directory):
            return Response(body="Forbidden", status=403)
        if not file_path.is_file():
            return await next(request)

        content_type, _ = mimetypes.guess_type(str(file_path))
        return Response(
            body=file_path.read_bytes(),
            content_type=content_type or "application/octet-stream",
        ).with_header("Cache-Control", self._cache_control)
