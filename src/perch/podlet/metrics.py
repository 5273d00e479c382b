"""Podlet telemetry: metric streams, instruments, and the aggregator.

Each telemetry source (the podlet itself, process health, response
timing) owns a ``MetricStream``. The ``MetricsAggregator`` pipes every
attached stream into one merged output and observes each stream's
errors separately, so a failing source is logged and the others keep
flowing.

Usage::

    stream = MetricStream("podlet")
    active = stream.gauge("active_podlet", "Podlet is mounted", labels={"podlet_name": "cart"})

    metrics = MetricsAggregator()
    metrics.attach(stream)
    active.set(1)

    metrics.snapshot()  # [Metric(name="active_podlet", value=1.0, ...)]
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import Response
from perch.middleware.protocol import Next

logger = logging.getLogger("perch.metrics")


class MetricType(StrEnum):
    GAUGE = "gauge"
    COUNTER = "counter"
    HISTOGRAM = "histogram"


@dataclass(frozen=True, slots=True)
class Metric:
    """A single telemetry event. Immutable, safe to fan out."""

    name: str
    type: MetricType
    value: float
    description: str = ""
    labels: tuple[tuple[str, str], ...] = ()
    source: str = ""
    timestamp: float = field(default_factory=time.time)

    @property
    def key(self) -> tuple[str, tuple[tuple[str, str], ...]]:
        """Identity used for latest-value snapshots: name plus labels."""
        return (self.name, self.labels)


type Sink = Callable[[Metric], None]
type ErrorListener = Callable[[BaseException, "MetricStream"], None]


def _labels(labels: Mapping[str, object] | None) -> tuple[tuple[str, str], ...]:
    if not labels:
        return ()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


class MetricStream:
    """A named, append-only source of metrics.

    Metrics pushed before anything is piped are buffered (bounded) and
    flushed on the first ``pipe()``. Errors are reported to listeners
    registered with ``on_error()``; with no listener an error is raised
    to the caller of ``fail()``.
    """

    __slots__ = ("_buffer", "_error_listeners", "_sinks", "name")

    def __init__(self, name: str, *, buffer_size: int = 1024) -> None:
        self.name = name
        self._sinks: list[Sink] = []
        self._error_listeners: list[ErrorListener] = []
        self._buffer: deque[Metric] = deque(maxlen=buffer_size)

    def __repr__(self) -> str:
        return f"MetricStream({self.name!r})"

    def push(self, metric: Metric) -> None:
        """Append *metric* to the stream."""
        if not self._sinks:
            self._buffer.append(metric)
            return
        for sink in tuple(self._sinks):
            try:
                sink(metric)
            except Exception as exc:
                self.fail(exc)

    def pipe(self, sink: Sink) -> None:
        """Deliver every metric (including buffered ones) to *sink*."""
        self._sinks.append(sink)
        while self._buffer:
            self.push(self._buffer.popleft())

    def on_error(self, listener: ErrorListener) -> None:
        self._error_listeners.append(listener)

    def fail(self, exc: BaseException) -> None:
        """Report an error on this stream."""
        if not self._error_listeners:
            raise exc
        for listener in tuple(self._error_listeners):
            listener(exc, self)

    # -- Instruments --

    def gauge(self, name: str, description: str = "", labels: Mapping[str, object] | None = None) -> Gauge:
        return Gauge(self, name, description, _labels(labels))

    def counter(self, name: str, description: str = "", labels: Mapping[str, object] | None = None) -> Counter:
        return Counter(self, name, description, _labels(labels))

    def histogram(
        self, name: str, description: str = "", labels: Mapping[str, object] | None = None
    ) -> Histogram:
        return Histogram(self, name, description, _labels(labels))


class _Instrument:
    __slots__ = ("_labels", "_stream", "description", "name")

    type: MetricType

    def __init__(
        self,
        stream: MetricStream,
        name: str,
        description: str,
        labels: tuple[tuple[str, str], ...],
    ) -> None:
        self._stream = stream
        self._labels = labels
        self.name = name
        self.description = description

    def _emit(self, value: float, labels: Mapping[str, object] | None) -> None:
        merged = dict(self._labels)
        merged.update(_labels(labels))
        self._stream.push(
            Metric(
                name=self.name,
                type=self.type,
                value=float(value),
                description=self.description,
                labels=tuple(sorted(merged.items())),
                source=self._stream.name,
            )
        )


class Gauge(_Instrument):
    __slots__ = ()
    type = MetricType.GAUGE

    def set(self, value: float, labels: Mapping[str, object] | None = None) -> None:
        self._emit(value, labels)


class Counter(_Instrument):
    __slots__ = ()
    type = MetricType.COUNTER

    def inc(self, value: float = 1, labels: Mapping[str, object] | None = None) -> None:
        self._emit(value, labels)


class Histogram(_Instrument):
    __slots__ = ()
    type = MetricType.HISTOGRAM

    def observe(self, value: float, labels: Mapping[str, object] | None = None) -> None:
        self._emit(value, labels)


class MetricsAggregator:
    """Merges independent metric streams into one output.

    ``enabled=False`` turns ``attach()`` into a no-op, so nothing is
    merged when metrics are configured off.

    The merged output can be consumed three ways: ``output.pipe(sink)``,
    ``subscribe()`` (async iterator per consumer, bounded queue, events
    dropped for slow consumers), or ``snapshot()`` (latest value per
    metric name and label set).
    """

    __slots__ = ("_latest", "_sources", "_subscribers", "enabled", "output")

    def __init__(self, *, enabled: bool = True) -> None:
        self.enabled = enabled
        self.output = MetricStream("metrics")
        self._sources: list[MetricStream] = []
        self._latest: dict[tuple[str, tuple[tuple[str, str], ...]], Metric] = {}
        self._subscribers: set[asyncio.Queue[Metric | None]] = set()

    @property
    def sources(self) -> tuple[MetricStream, ...]:
        return tuple(self._sources)

    def attach(self, stream: MetricStream) -> bool:
        """Pipe *stream* into the merged output. Returns False when disabled."""
        if not self.enabled:
            return False
        stream.on_error(self._on_source_error)
        stream.pipe(self._write)
        self._sources.append(stream)
        logger.debug("Attached metric stream %r", stream.name)
        return True

    def _on_source_error(self, exc: BaseException, stream: MetricStream) -> None:
        logger.error("Metric stream %r failed: %s", stream.name, exc, exc_info=exc)

    def _write(self, metric: Metric) -> None:
        self._latest[metric.key] = metric
        for queue in tuple(self._subscribers):
            try:
                queue.put_nowait(metric)
            except asyncio.QueueFull:
                pass
        self.output.push(metric)

    def snapshot(self) -> list[Metric]:
        """Latest metric per name and label set, in first-seen order."""
        return list(self._latest.values())

    async def subscribe(self, *, maxsize: int = 256) -> AsyncIterator[Metric]:
        """Yield merged metrics as they arrive until ``close()``."""
        queue: asyncio.Queue[Metric | None] = asyncio.Queue(maxsize=maxsize)
        self._subscribers.add(queue)
        try:
            while True:
                metric = await queue.get()
                if metric is None:
                    break
                yield metric
        finally:
            self._subscribers.discard(queue)

    def close(self) -> None:
        """Stop every subscriber."""
        for queue in self._subscribers:
            try:
                queue.put_nowait(None)
            except asyncio.QueueFull:
                pass
        self._subscribers.clear()


class ResponseTiming:
    """Middleware recording request durations into its own metric stream.

    Only routes registered with ``timing=True`` are timed unless
    ``time_all_routes`` is set. With ``group_status_codes`` the status
    label is the class (``2xx``, ``4xx``) instead of the exact code.
    """

    __slots__ = ("_histogram", "group_status_codes", "metrics", "time_all_routes")

    def __init__(self, *, time_all_routes: bool = False, group_status_codes: bool = True) -> None:
        self.time_all_routes = time_all_routes
        self.group_status_codes = group_status_codes
        self.metrics = MetricStream("response_timing")
        self._histogram = self.metrics.histogram(
            "http_request_duration_seconds",
            "Time taken to send a response",
        )

    async def __call__(self, request: Request, next: Next) -> Response:
        start = time.perf_counter()
        try:
            response = await next(request)
        except HTTPError as exc:
            self._record(request, exc.status, time.perf_counter() - start)
            raise
        self._record(request, response.status, time.perf_counter() - start)
        return response

    def _record(self, request: Request, status: int, elapsed: float) -> None:
        route = request.route
        if route is None:
            if not self.time_all_routes:
                return
            url = request.path
        elif route.timing or self.time_all_routes:
            url = route.path
        else:
            return

        status_label = f"{status // 100}xx" if self.group_status_codes else str(status)
        self._histogram.observe(
            elapsed,
            labels={"method": request.method, "status": status_label, "url": url},
        )
