"""Podlet core: components, registry, rendering, state, routes, metrics."""

from perch.podlet.assets import AssetResolver
from perch.podlet.bundler import BundleOptions, Bundler, PythonBundler
from perch.podlet.components import Component
from perch.podlet.dispatcher import Dispatcher, RenderMode
from perch.podlet.metrics import Metric, MetricsAggregator, MetricStream, MetricType, ResponseTiming
from perch.podlet.protocol import PodiumContext, Podlet
from perch.podlet.registry import ComponentRegistry
from perch.podlet.renderer import TemplateRenderer
from perch.podlet.server import PodletServer, create_server
from perch.podlet.state import StateKind, StateProviders

__all__ = [
    "AssetResolver",
    "BundleOptions",
    "Bundler",
    "Component",
    "ComponentRegistry",
    "Dispatcher",
    "Metric",
    "MetricStream",
    "MetricType",
    "MetricsAggregator",
    "PodiumContext",
    "Podlet",
    "PodletServer",
    "PythonBundler",
    "RenderMode",
    "ResponseTiming",
    "StateKind",
    "StateProviders",
    "TemplateRenderer",
    "create_server",
]
