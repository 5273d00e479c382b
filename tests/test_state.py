"""Tests for perch.podlet.state — providers and initial-state encoding."""

import logging
from datetime import datetime

import pytest

from perch.http.request import Request
from perch.podlet.protocol import PodiumContext
from perch.podlet.state import StateKind, StateProviders, encode_state, wrapper_template


def _request() -> Request:
    scope = {"type": "http", "method": "GET", "path": "/cart/", "headers": []}
    return Request.from_asgi(scope, None)


class TestEncodeState:
    @pytest.mark.parametrize("state", [None, {}, "", [], 0])
    def test_falsy_state_is_empty_json_string(self, state) -> None:
        assert encode_state(state) == '""'

    def test_compact_json(self) -> None:
        assert encode_state({"count": 3, "items": [1, 2]}) == '{"count":3,"items":[1,2]}'

    def test_attribute_escaping(self) -> None:
        encoded = encode_state({"title": "Tom's <b>&</b>"})
        assert encoded == '{"title":"Tom&#39;s &lt;b&gt;&amp;&lt;/b&gt;"}'
        assert "'" not in encoded

    def test_unserializable_state_is_empty(self, caplog) -> None:
        with caplog.at_level(logging.ERROR, logger="perch.podlet"):
            encoded = encode_state({"updated": datetime(2024, 1, 1)})
        assert encoded == '""'
        assert "not JSON serializable" in caplog.text

    def test_wrapper(self) -> None:
        assert wrapper_template("cart", "content", {"count": 3}) == (
            "<cart-content initial-state='{\"count\":3}'></cart-content>"
        )
        assert wrapper_template("cart", StateKind.FALLBACK, None) == (
            "<cart-fallback initial-state='\"\"'></cart-fallback>"
        )


class TestStateProviders:
    async def test_default_is_empty(self) -> None:
        providers = StateProviders()
        assert await providers.resolve("content", _request(), PodiumContext()) == {}
        assert await providers.resolve("fallback", _request(), PodiumContext()) == {}

    async def test_async_and_sync_providers(self) -> None:
        providers = StateProviders()

        async def content(request, context):
            return {"locale": context.locale}

        providers.register("content", content)
        providers.register(StateKind.FALLBACK, lambda request, context: {"cached": True})

        context = PodiumContext({"locale": "nb-NO"})
        assert await providers.resolve("content", _request(), context) == {"locale": "nb-NO"}
        assert await providers.resolve("fallback", _request(), context) == {"cached": True}

    async def test_last_write_wins(self, caplog) -> None:
        providers = StateProviders()
        providers.register("content", lambda request, context: {"v": 1})
        with caplog.at_level(logging.INFO, logger="perch.podlet"):
            providers.register("content", lambda request, context: {"v": 2})
        assert await providers.resolve("content", _request(), PodiumContext()) == {"v": 2}
        assert "Replacing content state provider" in caplog.text

    async def test_failing_provider_yields_empty_state(self, caplog) -> None:
        providers = StateProviders()

        async def broken(request, context):
            raise RuntimeError("database down")

        providers.register("content", broken)
        assert await providers.resolve("content", _request(), PodiumContext()) == {}
        assert "database down" in caplog.text

    def test_unknown_kind(self) -> None:
        with pytest.raises(ValueError):
            StateProviders().register("sidebar", lambda request, context: {})
