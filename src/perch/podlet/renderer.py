"""Declarative shadow DOM server rendering.

Walks an HTML fragment and, for every element whose tag names a
registered component, inserts the component's markup into an open
declarative shadow root right after the start tag::

    <cart-content initial-state='{"count":3}'>
      <template shadowrootmode="open"><p>3 items</p></template>
    </cart-content>

Everything else passes through as written. Unregistered tags (including
components whose build failed) render as plain elements and are upgraded
on the client.
"""

from collections.abc import Iterator
from html.parser import HTMLParser

from kida import Environment

from perch.podlet.registry import ComponentRegistry

SHADOW_ROOT_OPEN = '<template shadowrootmode="open">'
SHADOW_ROOT_CLOSE = "</template>"

# A piece is raw markup, or a (tag, attributes) pair for a component element.
type _Piece = str | tuple[str, dict[str, str | None]]


class _FragmentScanner(HTMLParser):
    """Splits markup into raw text pieces and component start tags."""

    def __init__(self, is_component) -> None:
        super().__init__(convert_charrefs=False)
        self._is_component = is_component
        self.pieces: list[_Piece] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self.pieces.append(self.get_starttag_text() or f"<{tag}>")
        if self._is_component(tag):
            self.pieces.append((tag, dict(attrs)))

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self.pieces.append(self.get_starttag_text() or f"<{tag}/>")

    def handle_endtag(self, tag: str) -> None:
        self.pieces.append(f"</{tag}>")

    def handle_data(self, data: str) -> None:
        self.pieces.append(data)

    def handle_entityref(self, name: str) -> None:
        self.pieces.append(f"&{name};")

    def handle_charref(self, name: str) -> None:
        self.pieces.append(f"&#{name};")

    def handle_comment(self, data: str) -> None:
        self.pieces.append(f"<!--{data}-->")

    def handle_decl(self, decl: str) -> None:
        self.pieces.append(f"<!{decl}>")

    def handle_pi(self, data: str) -> None:
        self.pieces.append(f"<?{data}>")

    def unknown_decl(self, data: str) -> None:
        self.pieces.append(f"<![{data}]>")


class TemplateRenderer:
    """Render fragments with registered components expanded server side.

    Usage::

        renderer = TemplateRenderer(registry)
        html = "".join(renderer.render("<cart-content></cart-content>"))
    """

    __slots__ = ("env", "registry")

    def __init__(self, registry: ComponentRegistry, env: Environment | None = None) -> None:
        self.registry = registry
        self.env = env or Environment(autoescape=True)

    def render(self, template: str) -> Iterator[str]:
        """Lazily render *template*; the iterator is consumed once."""
        return self._render(template, frozenset())

    def _render(self, template: str, ancestors: frozenset[str]) -> Iterator[str]:
        scanner = _FragmentScanner(
            lambda tag: tag not in ancestors and self.registry.get(tag) is not None
        )
        scanner.feed(template)
        scanner.close()

        for piece in scanner.pieces:
            if isinstance(piece, str):
                yield piece
                continue
            tag, attributes = piece
            component_cls = self.registry.get(tag)
            if component_cls is None:
                continue
            component = component_cls(tag, attributes)
            shadow = "".join(component.render(self.env))
            yield SHADOW_ROOT_OPEN
            # Components may nest other registered components in their markup.
            yield from self._render(shadow, ancestors | {tag})
            yield SHADOW_ROOT_CLOSE
