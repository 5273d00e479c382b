"""Tests for perch.podlet.metrics — streams, aggregator, response timing."""

import asyncio
import logging

import pytest

from perch.app import App
from perch.podlet.metrics import (
    Metric,
    MetricsAggregator,
    MetricStream,
    MetricType,
    ResponseTiming,
)
from perch.testing import TestClient


class TestMetricStream:
    def test_buffers_until_piped(self) -> None:
        stream = MetricStream("podlet")
        stream.counter("requests_total").inc()
        stream.counter("requests_total").inc(2)

        received: list[Metric] = []
        stream.pipe(received.append)
        assert [m.value for m in received] == [1.0, 2.0]

        stream.counter("requests_total").inc()
        assert len(received) == 3

    def test_buffer_is_bounded(self) -> None:
        stream = MetricStream("podlet", buffer_size=2)
        gauge = stream.gauge("g")
        for value in range(5):
            gauge.set(value)
        received: list[Metric] = []
        stream.pipe(received.append)
        assert [m.value for m in received] == [3.0, 4.0]

    def test_instrument_metadata(self) -> None:
        stream = MetricStream("podlet")
        received: list[Metric] = []
        stream.pipe(received.append)

        stream.gauge("active_podlet", "Active", labels={"podlet_name": "cart"}).set(1)
        metric = received[0]
        assert metric.name == "active_podlet"
        assert metric.type is MetricType.GAUGE
        assert metric.description == "Active"
        assert metric.labels == (("podlet_name", "cart"),)
        assert metric.source == "podlet"

    def test_call_labels_merge_with_instrument_labels(self) -> None:
        stream = MetricStream("s")
        received: list[Metric] = []
        stream.pipe(received.append)
        stream.histogram("h", labels={"a": 1}).observe(0.5, labels={"b": "x"})
        assert received[0].labels == (("a", "1"), ("b", "x"))

    def test_fail_without_listener_raises(self) -> None:
        stream = MetricStream("s")
        with pytest.raises(ValueError):
            stream.fail(ValueError("bad"))

    def test_sink_error_reported_to_listener(self) -> None:
        stream = MetricStream("s")
        errors: list[BaseException] = []
        stream.on_error(lambda exc, source: errors.append(exc))

        def broken(metric: Metric) -> None:
            raise RuntimeError("sink down")

        stream.pipe(broken)
        stream.counter("c").inc()
        assert [str(e) for e in errors] == ["sink down"]


class TestMetricsAggregator:
    def test_merges_streams(self) -> None:
        metrics = MetricsAggregator()
        podlet = MetricStream("podlet")
        timing = MetricStream("response_timing")
        assert metrics.attach(podlet)
        assert metrics.attach(timing)

        received: list[Metric] = []
        metrics.output.pipe(received.append)
        podlet.gauge("active_podlet").set(1)
        timing.histogram("http_request_duration_seconds").observe(0.1)

        assert [m.source for m in received] == ["podlet", "response_timing"]
        assert metrics.sources == (podlet, timing)

    def test_disabled_attaches_nothing(self) -> None:
        metrics = MetricsAggregator(enabled=False)
        stream = MetricStream("podlet")
        assert metrics.attach(stream) is False
        stream.gauge("active_podlet").set(1)
        assert metrics.sources == ()
        assert metrics.snapshot() == []

    def test_source_errors_are_isolated(self, caplog) -> None:
        metrics = MetricsAggregator()
        failing = MetricStream("process")
        healthy = MetricStream("podlet")
        metrics.attach(failing)
        metrics.attach(healthy)

        with caplog.at_level(logging.ERROR, logger="perch.metrics"):
            failing.fail(RuntimeError("process stream broke"))
        healthy.counter("ok_total").inc()

        assert "'process' failed" in caplog.text
        assert [m.name for m in metrics.snapshot()] == ["ok_total"]

    def test_snapshot_keeps_latest_per_label_set(self) -> None:
        metrics = MetricsAggregator()
        stream = MetricStream("podlet")
        metrics.attach(stream)
        gauge = stream.gauge("g")
        gauge.set(1, labels={"x": "a"})
        gauge.set(2, labels={"x": "a"})
        gauge.set(3, labels={"x": "b"})
        assert [(m.labels, m.value) for m in metrics.snapshot()] == [
            ((("x", "a"),), 2.0),
            ((("x", "b"),), 3.0),
        ]

    async def test_subscribe(self) -> None:
        metrics = MetricsAggregator()
        stream = MetricStream("podlet")
        metrics.attach(stream)

        async def consume() -> list[str]:
            return [metric.name async for metric in metrics.subscribe()]

        task = asyncio.create_task(consume())
        await asyncio.sleep(0)
        stream.counter("a").inc()
        stream.counter("b").inc()
        metrics.close()
        assert await task == ["a", "b"]

    async def test_slow_subscriber_drops(self) -> None:
        metrics = MetricsAggregator()
        stream = MetricStream("podlet")
        metrics.attach(stream)

        subscription = metrics.subscribe(maxsize=1)
        first = asyncio.ensure_future(anext(subscription))
        await asyncio.sleep(0)
        for name in ("a", "b", "c"):
            stream.counter(name).inc()
        assert (await first).name == "a"
        await subscription.aclose()


class TestResponseTiming:
    def _app(self, timing: ResponseTiming) -> App:
        app = App()
        app.add_middleware(timing)
        app.add_route("/cart/manifest.json", lambda request: {"name": "cart"}, timing=True)
        app.add_route("/untimed", lambda request: "x")
        return app

    async def test_times_opted_in_routes(self) -> None:
        timing = ResponseTiming()
        received: list[Metric] = []
        timing.metrics.pipe(received.append)

        async with TestClient(self._app(timing)) as client:
            await client.get("/cart/manifest.json")
            await client.get("/untimed")

        assert len(received) == 1
        metric = received[0]
        assert metric.name == "http_request_duration_seconds"
        assert metric.type is MetricType.HISTOGRAM
        assert dict(metric.labels) == {
            "method": "GET",
            "status": "2xx",
            "url": "/cart/manifest.json",
        }
        assert metric.value >= 0

    async def test_time_all_routes_exact_status(self) -> None:
        timing = ResponseTiming(time_all_routes=True, group_status_codes=False)
        received: list[Metric] = []
        timing.metrics.pipe(received.append)

        async with TestClient(self._app(timing)) as client:
            await client.get("/untimed")
            await client.get("/missing")

        labels = [dict(m.labels) for m in received]
        assert labels[0]["status"] == "200"
        assert labels[0]["url"] == "/untimed"
        assert labels[1]["status"] == "404"
        assert labels[1]["url"] == "/missing"
