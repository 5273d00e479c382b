"""Shared fixtures: throwaway podlet projects and configuration helpers."""

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from perch.config import PodletConfig, load_config
from perch.podlet.bundler import PythonBundler

CONTENT_SOURCE = '''\
from perch.podlet import Component


class Content(Component):
    # Rendered into the declarative shadow root
    template = "<p>{{ count }} items in your cart</p>"

    def context(self):
        state = self.get_initial_state()
        return {"count": state.get("count", 0)}
'''

FALLBACK_SOURCE = '''\
from perch.podlet import Component


class Fallback(Component):
    template = "<p>Cart unavailable</p>"
'''


def write_config(root: Path, data: dict[str, Any]) -> None:
    """Write ``config/common.json`` for the project at *root*."""
    config_dir = root / "config"
    config_dir.mkdir(exist_ok=True)
    (config_dir / "common.json").write_text(json.dumps(data))


def make_config(root: Path, **environ: str) -> PodletConfig:
    """Load configuration for *root* with ``APP_NAME=cart`` plus *environ*."""
    return load_config(root, environ={"APP_NAME": "cart", **environ})


class CountingBundler:
    """PythonBundler that counts builds and can be slowed down."""

    def __init__(self, outdir: Path, *, delay: float = 0) -> None:
        self.calls = 0
        self.delay = delay
        self._inner = PythonBundler(outdir)

    async def build(self, entry: Path) -> Path:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return await self._inner.build(entry)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A podlet project with a content component."""
    (tmp_path / "content.py").write_text(CONTENT_SOURCE)
    return tmp_path


@pytest.fixture
def bundler(tmp_path: Path) -> CountingBundler:
    return CountingBundler(tmp_path / "dist" / "server")
