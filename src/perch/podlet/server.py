"""Podlet server assembly.

``PodletServer`` wires a validated configuration into a running podlet:
protocol descriptor, component registry, render dispatcher, state
providers, metrics, process health, and routes, all mounted on one
``App``. It is itself an ASGI application.

Project layout it reads from (``root``, default: working directory)::

    content.py          content component        -> content route
    fallback.py         fallback component       -> fallback route
    server.py           ``server(podlet_server)`` setup hook
    schemas/*.py        per-route ``schema``
    dist/               built assets, served under /static in development
    dist/server/        server-side component builds

Usage::

    server = create_server()
    run_server(server, server.config.get("app.host"), server.config.get("app.port"))
"""

import importlib.util
import inspect
import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from perch._internal.asgi import Receive, Scope, Send
from perch.app import App
from perch.config import PodletConfig, load_config
from perch.errors import ConfigurationError
from perch.middleware.static import StaticFiles
from perch.podlet.assets import AssetResolver
from perch.podlet.bundler import Bundler, PythonBundler
from perch.podlet.dispatcher import Dispatcher
from perch.podlet.metrics import MetricsAggregator, ResponseTiming
from perch.podlet.process import ProcessHealth
from perch.podlet.protocol import PODIUM_VERSION, Podlet
from perch.podlet.registry import ComponentRegistry
from perch.podlet.renderer import TemplateRenderer
from perch.podlet.routes import RouteComposer
from perch.podlet.state import StateKind, StateProvider, StateProviders
from perch.routing.route import Route

logger = logging.getLogger("perch.podlet")

SERVER_HOOK_FILE = "server.py"


class PodletServer:
    """One podlet, ready to serve.

    Everything is assembled in the constructor, including the project's
    ``server.py`` hook, so routes and providers are in place before the
    app freezes at startup.
    """

    __slots__ = (
        "app",
        "assets",
        "config",
        "dispatcher",
        "health",
        "metrics",
        "paths",
        "podlet",
        "providers",
        "registry",
        "renderer",
        "root",
        "timing",
    )

    def __init__(
        self,
        config: PodletConfig,
        *,
        root: str | Path | None = None,
        bundler: Bundler | None = None,
    ) -> None:
        self.config = config
        self.root = Path(root) if root is not None else Path.cwd()
        name = config.get("app.name")
        development = config.get("app.development")

        self.app = App(debug=development)
        self.podlet = Podlet(
            name=name,
            version=config.get("podlet.version"),
            pathname=config.get("podlet.pathname"),
            manifest=config.get("podlet.manifest"),
            content=config.get("podlet.content"),
            fallback=config.get("podlet.fallback"),
            development=development,
        )
        self.assets = AssetResolver(config.get("assets.base"))
        self.providers = StateProviders()
        self.registry = ComponentRegistry(
            name,
            bundler or PythonBundler(self.root / "dist" / "server"),
            development=development,
        )
        self.renderer = TemplateRenderer(self.registry)
        self.dispatcher = Dispatcher(self.registry, self.renderer, self.assets)
        self.metrics = MetricsAggregator(enabled=config.get("metrics.enabled"))
        self.health: ProcessHealth | None = None
        self.timing: ResponseTiming | None = None

        if development:
            self.app.add_middleware(StaticFiles(self.root / "dist", prefix="/static"))

        if config.get("app.processExceptionHandlers"):
            self.health = ProcessHealth()
            self.health.close_on_exit(self.app, grace=config.get("app.grace"))
            self.metrics.attach(self.health.metrics)

        if self.metrics.attach(self.podlet.metrics):
            active = self.podlet.metrics.gauge(
                "active_podlet",
                "Indicates if a podlet is mounted and active",
                labels={"podium_version": PODIUM_VERSION, "podlet_name": name},
            )
            active.set(1)

        if config.get("metrics.timing.enabled"):
            self.timing = ResponseTiming(
                time_all_routes=config.get("metrics.timing.timeAllRoutes"),
                group_status_codes=config.get("metrics.timing.groupStatusCodes"),
            )
            self.app.add_middleware(self.timing)
            self.metrics.attach(self.timing.metrics)

        composer = RouteComposer(
            config, self.podlet, self.providers, self.dispatcher, root=self.root
        )
        self.paths = composer.compose(self.app)
        self._run_server_hook()

        self.app.on_shutdown(self.metrics.close)
        logger.info("Podlet %r ready with routes %s", name, ", ".join(self.paths))

    # -- Application API (used from server.py) --

    def set_content_state(self, provider: StateProvider) -> None:
        """Provide state for content renders: ``(request, context) -> mapping``."""
        self.providers.register(StateKind.CONTENT, provider)

    def set_fallback_state(self, provider: StateProvider) -> None:
        """Provide state for fallback renders.

        Fallbacks are cached by the layout server, so the context passed
        to *provider* should not be relied on for per-request data.
        """
        self.providers.register(StateKind.FALLBACK, provider)

    def proxy(self, target: str, name: str) -> str:
        return self.podlet.proxy(target, name)

    def route(self, path: str, **options: Any) -> Callable[..., Any]:
        """Register an extra route on the underlying app (decorator)."""
        return self.app.route(path, **options)

    @property
    def routes(self) -> list[Route]:
        return self.app.routes

    # -- Lifecycle --

    async def startup(self) -> None:
        await self.app.startup()

    async def shutdown(self) -> None:
        await self.app.shutdown()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.app(scope, receive, send)

    # -- Internal --

    def _run_server_hook(self) -> None:
        path = self.root / SERVER_HOOK_FILE
        if not path.is_file():
            return

        spec = importlib.util.spec_from_file_location("_perch_server_hook", path)
        if spec is None or spec.loader is None:
            msg = f"Cannot load {path}"
            raise ConfigurationError(msg)
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            msg = f"Failed to import {path}: {exc}"
            raise ConfigurationError(msg) from exc

        hook = getattr(module, "server", None)
        if hook is None:
            logger.warning("%s does not define server(), skipping", path)
            return

        result = hook(self)
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            msg = f"server() in {path} must be a regular function; routes are fixed once serving starts"
            raise ConfigurationError(msg)


def create_server(
    root: str | Path | None = None,
    *,
    args: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> PodletServer:
    """Load configuration for *root* and build its ``PodletServer``."""
    config = load_config(root, args=args, environ=environ)
    return PodletServer(config, root=root)
