"""Perch application class.

Mutable during setup (route registration, middleware, lifecycle hooks).
Frozen at runtime when the first ASGI call arrives.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.invoke import invoke
from perch.middleware.protocol import Middleware
from perch.routing.route import Route
from perch.routing.router import Router
from perch.server.handler import handle_request

logger = logging.getLogger("perch.server")

type Handler = Callable[..., Any]


@dataclass(slots=True)
class _PendingRoute:
    """A route waiting to be compiled."""

    path: str
    handler: Handler
    methods: list[str] | None
    name: str | None
    timing: bool = False
    schema: Any = None


class App:
    """The ASGI application podlet routes are mounted on.

    Mutable during setup, frozen when the first ASGI scope arrives.

    Thread safety:
        Setup is single-threaded. The freeze transition uses a Lock +
        double-check so exactly one worker compiles the route table.
    """

    __slots__ = (
        "_freeze_lock",
        "_frozen",
        "_middleware",
        "_middleware_list",
        "_pending_routes",
        "_router",
        "_shutdown_hooks",
        "_startup_hooks",
        "debug",
    )

    def __init__(self, *, debug: bool = False) -> None:
        self.debug = debug
        self._pending_routes: list[_PendingRoute] = []
        self._middleware_list: list[Middleware] = []
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen = False
        self._freeze_lock = threading.Lock()
        self._router: Router | None = None
        self._middleware: tuple[Callable[..., Any], ...] = ()

    # -- Route registration --

    def route(
        self,
        path: str,
        *,
        methods: list[str] | None = None,
        name: str | None = None,
        timing: bool = False,
        schema: Any = None,
    ) -> Callable[[Handler], Handler]:
        """Register a route handler via decorator.

        Handlers receive the ``Request`` and may be sync or async.

        Args:
            path: URL path. Trailing slashes are not significant.
            methods: HTTP methods. Defaults to ``["GET"]``.
            name: Optional route name.
            timing: Opt this route into response-timing metrics.
            schema: Optional request-validation schema, attached as-is.
        """

        def decorator(func: Handler) -> Handler:
            self.add_route(path, func, methods=methods, name=name, timing=timing, schema=schema)
            return func

        return decorator

    def add_route(
        self,
        path: str,
        handler: Handler,
        *,
        methods: list[str] | None = None,
        name: str | None = None,
        timing: bool = False,
        schema: Any = None,
    ) -> None:
        """Register a route handler directly (non-decorator form)."""
        self._check_not_frozen()
        self._pending_routes.append(_PendingRoute(path, handler, methods, name, timing, schema))

    # -- Middleware --

    def add_middleware(self, middleware: Middleware) -> None:
        """Add a middleware to the pipeline (outermost first)."""
        self._check_not_frozen()
        self._middleware_list.append(middleware)

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register a sync or async startup hook, run during ASGI lifespan startup."""
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register a sync or async shutdown hook, run during ASGI lifespan shutdown."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    async def startup(self) -> None:
        """Freeze and run startup hooks in registration order."""
        self._ensure_frozen()
        for hook in self._startup_hooks:
            await invoke(hook)

    async def shutdown(self) -> None:
        """Run shutdown hooks in registration order."""
        for hook in self._shutdown_hooks:
            await invoke(hook)

    # -- Introspection --

    @property
    def routes(self) -> list[Route]:
        """Routes registered so far (compiled or pending)."""
        if self._router is not None:
            return self._router.routes
        return [self._build_route(pending) for pending in self._pending_routes]

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        self._ensure_frozen()
        assert self._router is not None

        await handle_request(
            scope,
            receive,
            send,
            router=self._router,
            middleware=self._middleware,
            debug=self.debug,
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    await self.startup()
                except Exception as exc:
                    logger.exception("Startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    def _ensure_frozen(self) -> None:
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the route table and capture middleware.

        MUST only be called while holding _freeze_lock.
        """
        router = Router()
        for pending in self._pending_routes:
            router.add(self._build_route(pending))
        router.compile()
        self._router = router
        self._middleware = tuple(self._middleware_list)
        self._frozen = True

    @staticmethod
    def _build_route(pending: _PendingRoute) -> Route:
        return Route(
            path=pending.path,
            handler=pending.handler,
            methods=frozenset(m.upper() for m in (pending.methods or ["GET"])),
            name=pending.name,
            timing=pending.timing,
            schema=pending.schema,
        )

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, middleware, and hooks during startup."
            )
            raise RuntimeError(msg)
