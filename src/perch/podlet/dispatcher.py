"""Render-mode dispatch for content and fallback routes.

    ssr-only   registered component markup + declarative shadow DOM polyfill
    csr-only   raw template + client module script
    hydrate    both: SSR markup, polyfill, then the client module script
"""

import logging
from enum import StrEnum
from importlib import resources
from pathlib import Path

from perch.podlet.assets import AssetResolver
from perch.podlet.registry import ComponentRegistry
from perch.podlet.renderer import TemplateRenderer

logger = logging.getLogger("perch.podlet")

POLYFILL_RESOURCE = "dsd_polyfill.js"


class RenderMode(StrEnum):
    SSR_ONLY = "ssr-only"
    CSR_ONLY = "csr-only"
    HYDRATE = "hydrate"


def load_polyfill() -> str:
    """Read the declarative shadow DOM polyfill shipped with the package.

    A missing file yields ``""``; rendering works without it in browsers
    with native support.
    """
    try:
        return resources.files("perch.podlet").joinpath(POLYFILL_RESOURCE).read_text(encoding="utf-8")
    except OSError:
        logger.debug("Declarative shadow DOM polyfill not found, continuing without it")
        return ""


class Dispatcher:
    """Produce response bodies for a template per render mode.

    Usage::

        dispatcher = Dispatcher(registry, TemplateRenderer(registry), AssetResolver())
        body = await dispatcher.render(RenderMode.HYDRATE, template, root / "content.py")
    """

    __slots__ = ("assets", "polyfill", "registry", "renderer")

    def __init__(
        self,
        registry: ComponentRegistry,
        renderer: TemplateRenderer,
        assets: AssetResolver,
        polyfill: str | None = None,
    ) -> None:
        self.registry = registry
        self.renderer = renderer
        self.assets = assets
        self.polyfill = load_polyfill() if polyfill is None else polyfill

    async def render(self, mode: RenderMode | str, template: str, source_path: str | Path) -> str:
        mode = RenderMode(mode)
        source_path = Path(source_path)

        if mode is RenderMode.CSR_ONLY:
            return f"{template}{self.client_script(source_path)}"

        await self.registry.ensure_registered(source_path)
        markup = "".join(self.renderer.render(template))
        body = f"{markup}<script>{self.polyfill}</script>"
        if mode is RenderMode.HYDRATE:
            body += self.client_script(source_path)
        return body

    def client_script(self, source_path: Path) -> str:
        url = self.assets.resolve(f"/client/{source_path.stem}.js")
        return f'<script type="module" src="{url}"></script>'
