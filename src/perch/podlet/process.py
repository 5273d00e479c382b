"""Process health telemetry and close-on-exit handling.

Counts exceptions that escape to the event loop (unawaited task
failures, callback errors) into a metric stream, and delays shutdown
completion by a grace period so in-flight requests can finish.
"""

import asyncio
import logging
from typing import Any

from perch.app import App
from perch.podlet.metrics import MetricStream

logger = logging.getLogger("perch.process")


class ProcessHealth:
    """Event-loop exception handler plus graceful shutdown.

    Usage::

        health = ProcessHealth()
        health.close_on_exit(app, grace=5)
        metrics.attach(health.metrics)
    """

    __slots__ = ("_exceptions", "_shutdowns", "metrics")

    def __init__(self) -> None:
        self.metrics = MetricStream("process")
        self._exceptions = self.metrics.counter(
            "process_unhandled_exceptions_total",
            "Exceptions that reached the event loop exception handler",
        )
        self._shutdowns = self.metrics.counter(
            "process_shutdown_total",
            "Graceful shutdowns started",
        )

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Route event-loop exceptions through this monitor."""
        loop = loop or asyncio.get_running_loop()
        loop.set_exception_handler(self.handle_exception)

    def handle_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        kind = type(exc).__name__ if exc is not None else "unknown"
        logger.error(
            "Unhandled exception in event loop: %s",
            context.get("message", kind),
            exc_info=exc,
        )
        self._exceptions.inc(labels={"type": kind})

    def close_on_exit(self, app: App, *, grace: int = 0) -> None:
        """Install the handler at startup and wait *grace* seconds on shutdown."""

        async def drain() -> None:
            self._shutdowns.inc()
            if grace:
                logger.info("Shutting down in %ss", grace)
                await asyncio.sleep(grace)

        app.on_startup(self.install)
        app.on_shutdown(drain)
