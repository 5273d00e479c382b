"""Decide which podlet routes exist and bind them to the dispatcher.

Routes, relative to ``/{app.name}``:

    {podlet.manifest}   always        JSON manifest
    {podlet.content}    content.py    rendered content
    {podlet.fallback}   fallback.py   rendered fallback
    GET /               development   redirect to content, else manifest

With ``app.component`` off only the manifest route is registered.
"""

import importlib.util
import logging
from pathlib import Path
from typing import Any

from perch.app import App
from perch.config import PodletConfig
from perch.errors import ConfigurationError
from perch.http.request import Request
from perch.http.response import HTML, Redirect, Response
from perch.podlet.dispatcher import Dispatcher, RenderMode
from perch.podlet.protocol import Podlet
from perch.podlet.state import StateKind, StateProviders, wrapper_template
from perch.routing.router import normalize_path

logger = logging.getLogger("perch.podlet")


def join_path(*parts: str) -> str:
    """Join URL path segments, keeping a trailing slash on the last one.

    ``join_path("/", "cart", "/")`` -> ``"/cart/"``
    """
    path = normalize_path("/".join(parts))
    if parts and parts[-1].endswith("/") and path != "/":
        path += "/"
    return path


def load_schema(path: Path) -> Any:
    """Import ``schema`` from a route schema module, or None if absent.

    Raises ConfigurationError when the module exists but can't be loaded.
    """
    if not path.is_file():
        return None
    module_name = f"_perch_schemas.{path.stem}"
    try:
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            msg = f"Cannot load schema module {path}"
            raise ConfigurationError(msg)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
    except ConfigurationError:
        raise
    except Exception as exc:
        msg = f"Failed to import schema module {path}: {exc}"
        raise ConfigurationError(msg) from exc
    if not hasattr(module, "schema"):
        msg = f"Schema module {path} does not define 'schema'"
        raise ConfigurationError(msg)
    return module.schema


class RouteComposer:
    """Registers the manifest, content, fallback, and redirect routes.

    Usage::

        composer = RouteComposer(config, podlet, providers, dispatcher, root=Path.cwd())
        composer.compose(app)
    """

    __slots__ = ("config", "dispatcher", "podlet", "providers", "root")

    def __init__(
        self,
        config: PodletConfig,
        podlet: Podlet,
        providers: StateProviders,
        dispatcher: Dispatcher,
        *,
        root: Path,
    ) -> None:
        self.config = config
        self.podlet = podlet
        self.providers = providers
        self.dispatcher = dispatcher
        self.root = Path(root)

    @property
    def app_name(self) -> str:
        return self.config.get("app.name")

    @property
    def mode(self) -> RenderMode:
        return RenderMode(self.config.get("app.mode"))

    def source(self, kind: StateKind) -> Path:
        return self.root / f"{kind}.py"

    def compose(self, app: App) -> list[str]:
        """Register routes on *app*; returns the registered paths."""
        manifest_path = join_path("/", self.app_name, self.podlet.manifest())
        app.add_route(manifest_path, self._manifest, name="manifest", timing=True)
        paths = [manifest_path]

        if not self.config.get("app.component"):
            return paths

        content_source = self.source(StateKind.CONTENT)
        content_path = join_path("/", self.app_name, self.podlet.content())
        has_content = content_source.is_file()
        if has_content:
            self._add_render_route(app, StateKind.CONTENT, content_path)
            paths.append(content_path)

        fallback_source = self.source(StateKind.FALLBACK)
        if fallback_source.is_file() and self.podlet.fallback():
            fallback_path = join_path("/", self.app_name, self.podlet.fallback())
            self._add_render_route(app, StateKind.FALLBACK, fallback_path)
            paths.append(fallback_path)
        elif fallback_source.is_file():
            logger.warning("fallback.py found but podlet.fallback is not set, skipping fallback route")

        if self.config.get("app.development"):
            if any(normalize_path(path) == "/" for path in paths):
                logger.debug("Root path is a podlet route, not adding development redirect")
            else:
                target = content_path if has_content else manifest_path
                app.add_route("/", _redirect_to(target), name="development-redirect")
                paths.append("/")

        return paths

    def _add_render_route(self, app: App, kind: StateKind, path: str) -> None:
        schema = load_schema(self.root / "schemas" / f"{kind}.py")
        source = self.source(kind)

        async def render(request: Request) -> Response:
            context = self.podlet.context(request)
            state = await self.providers.resolve(kind, request, context)
            template = wrapper_template(self.app_name, kind, state)
            body = await self.dispatcher.render(self.mode, template, source)
            return Response(body=self.podlet.wrap(body, context), content_type=HTML)

        app.add_route(path, render, name=str(kind), timing=True, schema=schema)

    def _manifest(self, request: Request) -> Response:
        return Response.json(self.podlet.to_dict())


def _redirect_to(target: str):
    def redirect(request: Request) -> Redirect:
        return Redirect(target)

    return redirect
