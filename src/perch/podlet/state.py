"""State providers for content and fallback renders.

A provider is ``(request, context) -> mapping | None``, sync or async.
Its result is serialized into the ``initial-state`` attribute of the
synthetic wrapper element so the same data reaches the server render
and the client component::

    <cart-content initial-state='{"count":3}'></cart-content>

Fallbacks are served from cache by the layout server. Fallback
providers still receive a context object, but it is not guaranteed to
carry per-request data and should not be relied on.
"""

import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from enum import StrEnum
from typing import Any

from perch._internal.invoke import invoke
from perch.http.request import Request
from perch.podlet.protocol import PodiumContext

logger = logging.getLogger("perch.podlet")

type StateProvider = Callable[
    [Request, PodiumContext], Awaitable[Mapping[str, Any] | None] | Mapping[str, Any] | None
]

# Single-quoted attribute: only these need replacing. Double quotes stay
# readable so the JSON is recognizable in the markup.
_ATTRIBUTE_ESCAPES = str.maketrans({"&": "&amp;", "<": "&lt;", ">": "&gt;", "'": "&#39;"})


class StateKind(StrEnum):
    CONTENT = "content"
    FALLBACK = "fallback"


async def empty_state(request: Request, context: PodiumContext) -> dict[str, Any]:
    return {}


def encode_state(state: Any) -> str:
    """Serialize *state* for a single-quoted HTML attribute.

    Falsy state serializes as ``""`` (the JSON encoding of an empty string),
    and so does state JSON can't represent, after logging the error.
    """
    try:
        text = json.dumps(state or "", separators=(",", ":"))
    except (TypeError, ValueError):
        logger.exception("State is not JSON serializable, rendering with empty state")
        text = '""'
    return text.translate(_ATTRIBUTE_ESCAPES)


def wrapper_template(app_name: str, kind: StateKind | str, state: Any) -> str:
    """``<{app}-{kind} initial-state='...'></{app}-{kind}>``"""
    tag = f"{app_name}-{StateKind(kind)}"
    return f"<{tag} initial-state='{encode_state(state)}'></{tag}>"


class StateProviders:
    """The two provider slots. Registering a kind again replaces its provider."""

    __slots__ = ("_providers",)

    def __init__(self) -> None:
        self._providers: dict[StateKind, StateProvider] = {
            StateKind.CONTENT: empty_state,
            StateKind.FALLBACK: empty_state,
        }

    def register(self, kind: StateKind | str, provider: StateProvider) -> None:
        kind = StateKind(kind)
        if self._providers[kind] is not empty_state:
            logger.info("Replacing %s state provider", kind)
        self._providers[kind] = provider

    def get(self, kind: StateKind | str) -> StateProvider:
        return self._providers[StateKind(kind)]

    async def resolve(
        self, kind: StateKind | str, request: Request, context: PodiumContext
    ) -> Mapping[str, Any] | None:
        """Call the provider for *kind*; a failing provider yields ``{}``."""
        kind = StateKind(kind)
        try:
            return await invoke(self._providers[kind], request, context)
        except Exception:
            logger.exception("%s state provider failed, rendering with empty state", kind)
            return {}
