"""Compile-on-demand component registry.

Maps logical component names (``{app}-{type}``, e.g. ``cart-content``)
to component classes built from source files in the project root.

Production:
    A logical name is compiled once for the life of the process; later
    calls return immediately. A failed build is retried on the next call.

Development:
    Every call drops the existing registration and rebuilds from disk,
    so each request renders the latest source. Each build is imported
    from its own artifact file (``content.<token>.py``) under its own
    module name, so neither the import system nor a cached ``.pyc`` can
    serve an earlier build. Artifacts of dropped registrations are
    deleted.

Concurrency:
    Registration is serialized per logical name with an in-flight task
    map. In production a caller that finds a build in flight awaits that
    build. In development that build may have read the source before
    the caller's request arrived, so the caller queues one follow-up
    build instead; every caller arriving during the same build shares
    that follow-up. Builds for different names run independently; there
    is no registry-wide lock.

Local imports:
    The project directory is on ``sys.path`` while a component module
    executes, so ``content.py`` may import modules that sit next to it.
    Those helper modules are cached by the import system as usual and
    are not reloaded on development rebuilds.
"""

import asyncio
import importlib.util
import logging
import shutil
import sys
import time
import types
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from pathlib import Path

from perch.errors import CompileError
from perch.podlet.bundler import Bundler
from perch.podlet.components import Component

logger = logging.getLogger("perch.podlet")


@dataclass(slots=True)
class ComponentRegistration:
    """Registry bookkeeping for one logical name. Never leaves the registry."""

    logical_name: str
    source_path: Path
    registered: bool = False
    generation: int = 0
    component: type[Component] | None = None
    module_name: str | None = None
    artifact: Path | None = None


class ComponentRegistry:
    """Per-server registry of compiled components.

    Usage::

        registry = ComponentRegistry("cart", PythonBundler(root / "dist" / "server"))
        await registry.ensure_registered(root / "content.py")
        registry.get("cart-content")  # -> Content class
    """

    __slots__ = (
        "_bundler",
        "_inflight",
        "_last_token",
        "_queued",
        "_registrations",
        "app_name",
        "development",
    )

    def __init__(self, app_name: str, bundler: Bundler, *, development: bool = False) -> None:
        self.app_name = app_name
        self.development = development
        self._bundler = bundler
        self._registrations: dict[str, ComponentRegistration] = {}
        self._inflight: dict[str, asyncio.Task[None]] = {}
        self._queued: dict[str, asyncio.Task[None]] = {}
        self._last_token = 0

    def logical_name(self, source_path: str | Path) -> str:
        """``/srv/cart/content.py`` -> ``"cart-content"``"""
        return f"{self.app_name}-{Path(source_path).stem}"

    def get(self, logical_name: str) -> type[Component] | None:
        """The registered component class for *logical_name*, if any."""
        registration = self._registrations.get(logical_name)
        if registration is None or not registration.registered:
            return None
        return registration.component

    def __contains__(self, logical_name: object) -> bool:
        return isinstance(logical_name, str) and self.get(logical_name) is not None

    def generation(self, logical_name: str) -> int:
        registration = self._registrations.get(logical_name)
        return registration.generation if registration else 0

    def artifact(self, logical_name: str) -> Path | None:
        """The file the registered component was imported from."""
        registration = self._registrations.get(logical_name)
        return registration.artifact if registration else None

    async def ensure_registered(self, source_path: str | Path) -> None:
        """Make sure the component built from *source_path* is registered.

        Never raises for build or import failures: those are logged and
        the component stays unregistered, so rendering degrades to
        markup without server-rendered content.
        """
        source_path = Path(source_path)
        name = self.logical_name(source_path)

        pending = self._inflight.get(name)
        if pending is not None:
            if self.development:
                pending = self._queue_after(pending, name, source_path)
            await asyncio.shield(pending)
            return

        registration = self._registrations.get(name)
        if registration is not None and registration.registered and not self.development:
            return

        await asyncio.shield(self._start(name, source_path))

    def _start(self, name: str, source_path: Path) -> asyncio.Task[None]:
        task = asyncio.ensure_future(self._register(name, source_path))
        self._inflight[name] = task
        task.add_done_callback(lambda done, _name=name: self._finished(_name, done))
        return task

    def _finished(self, name: str, task: asyncio.Task[None]) -> None:
        if self._inflight.get(name) is task:
            del self._inflight[name]

    def _queue_after(
        self, running: asyncio.Task[None], name: str, source_path: Path
    ) -> asyncio.Task[None]:
        queued = self._queued.get(name)
        if queued is None:
            queued = asyncio.ensure_future(self._build_after(running, name, source_path))
            self._queued[name] = queued
        return queued

    async def _build_after(
        self, running: asyncio.Task[None], name: str, source_path: Path
    ) -> None:
        await asyncio.wait([running])
        self._queued.pop(name, None)
        # A build started after `running` finished already saw the latest source.
        task = self._inflight.get(name)
        if task is None or task.done():
            task = self._start(name, source_path)
        await asyncio.shield(task)

    async def _register(self, name: str, source_path: Path) -> None:
        registration = self._registrations.get(name)
        if registration is None:
            registration = ComponentRegistration(logical_name=name, source_path=source_path)
            self._registrations[name] = registration
        else:
            # Development rebuild, or a retry after a failed production build.
            if self.development:
                registration.generation += 1
            registration.registered = False
            registration.component = None
            registration.source_path = source_path
            if registration.module_name is not None:
                sys.modules.pop(registration.module_name, None)
                registration.module_name = None
            if registration.artifact is not None:
                _discard(registration.artifact)
                registration.artifact = None

        if not source_path.is_file():
            logger.debug("No component source at %s", source_path)
            return

        try:
            built = await self._bundler.build(source_path)
            module_name, artifact, component = self._load(name, built, source_path.parent)
        except Exception:
            logger.exception("Failed to register component %s from %s", name, source_path)
            return

        registration.module_name = module_name
        registration.artifact = artifact
        registration.component = component
        registration.registered = True
        logger.debug("Registered %s from %s (generation %d)", name, artifact, registration.generation)

    def _load(
        self, name: str, built: Path, project_dir: Path
    ) -> tuple[str, Path, type[Component]]:
        token = self._next_token()
        module_name = f"_perch_ssr_{name.replace('-', '_')}_{token}"
        artifact = built.with_name(f"{built.stem}.{token}{built.suffix}")
        shutil.copyfile(built, artifact)

        spec = importlib.util.spec_from_file_location(module_name, artifact)
        if spec is None or spec.loader is None:
            _discard(artifact)
            raise CompileError(str(artifact), "cannot be imported")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            with _on_import_path(project_dir):
                spec.loader.exec_module(module)
            component = _find_component(module, str(artifact))
        except BaseException:
            sys.modules.pop(module_name, None)
            _discard(artifact)
            raise
        return module_name, artifact, component

    def _next_token(self) -> int:
        token = max(time.time_ns(), self._last_token + 1)
        self._last_token = token
        return token


@contextmanager
def _on_import_path(directory: Path) -> Iterator[None]:
    entry = str(directory)
    if entry in sys.path:
        yield
        return
    sys.path.insert(0, entry)
    try:
        yield
    finally:
        with suppress(ValueError):
            sys.path.remove(entry)


def _discard(artifact: Path) -> None:
    """Delete a loaded artifact and its cached bytecode."""
    artifact.unlink(missing_ok=True)
    with suppress(NotImplementedError):
        Path(importlib.util.cache_from_source(str(artifact))).unlink(missing_ok=True)


def _find_component(module: types.ModuleType, artifact: str) -> type[Component]:
    """Return ``module.element`` or the single Component subclass defined in the module."""
    element = getattr(module, "element", None)
    if element is not None:
        if isinstance(element, type) and issubclass(element, Component):
            return element
        raise CompileError(artifact, "'element' must be a Component subclass")

    found = [
        obj
        for obj in vars(module).values()
        if isinstance(obj, type)
        and issubclass(obj, Component)
        and obj.__module__ == module.__name__
    ]
    if len(found) != 1:
        raise CompileError(
            artifact,
            f"expected exactly one Component subclass, found {len(found)}",
        )
    return found[0]
