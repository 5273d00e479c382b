"""Tests for perch.podlet.components — the Component base class."""

from kida import Environment

from perch.podlet.components import Component


class Greeting(Component):
    template = "<p>Hello {{ name }}</p>"

    def context(self):
        return {"name": self.get_initial_state().get("name", "world")}


class TestInitialState:
    def test_parses_attribute(self) -> None:
        component = Component("cart-content", {"initial-state": '{"count":3}'})
        assert component.get_initial_state() == {"count": 3}

    def test_empty_string_state_is_empty_mapping(self) -> None:
        assert Component("cart-content", {"initial-state": '""'}).get_initial_state() == {}

    def test_missing_attribute(self) -> None:
        assert Component("cart-content", {}).get_initial_state() == {}

    def test_invalid_json(self, caplog) -> None:
        component = Component("cart-content", {"initial-state": "{nope"})
        assert component.get_initial_state() == {}
        assert "unparseable initial-state" in caplog.text

    def test_default_context_exposes_state(self) -> None:
        context = Component("x-y", {"initial-state": '{"a":1}'}).context()
        assert context == {"a": 1, "state": {"a": 1}}


class TestRender:
    def test_renders_template(self) -> None:
        env = Environment(autoescape=True)
        component = Greeting("cart-content", {"initial-state": '{"name":"Ada"}'})
        assert "".join(component.render(env)) == "<p>Hello Ada</p>"

    def test_autoescapes_state(self) -> None:
        env = Environment(autoescape=True)
        component = Greeting("cart-content", {"initial-state": '{"name":"<b>"}'})
        html = "".join(component.render(env))
        assert "<b>" not in html
        assert "&lt;b&gt;" in html

    def test_no_template(self) -> None:
        assert list(Component("x-y", {}).render(Environment())) == []
