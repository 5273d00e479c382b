"""Base class for server-renderable podlet components.

A component module (``content.py``, ``fallback.py``) defines one
``Component`` subclass with a kida ``template``. The same markup is
rendered on the server into a declarative shadow root and upgraded in
the browser by the client bundle.

Example ``content.py``::

    from perch.podlet import Component

    class Content(Component):
        template = "<p>{{ count }} items in your cart</p>"
"""

import json
import logging
from collections.abc import Iterator, Mapping
from typing import Any, ClassVar

from kida import Environment

logger = logging.getLogger("perch.podlet")

INITIAL_STATE_ATTRIBUTE = "initial-state"


class Component:
    """A component instance bound to one element's attributes.

    Subclasses set ``template``; override ``context()`` to add values.
    """

    template: ClassVar[str] = ""

    def __init__(self, tag: str, attributes: Mapping[str, str | None]) -> None:
        self.tag = tag
        self.attributes = dict(attributes)

    def get_initial_state(self) -> Any:
        """State serialized into the ``initial-state`` attribute, or ``{}``."""
        raw = self.attributes.get(INITIAL_STATE_ATTRIBUTE)
        if not raw:
            return {}
        try:
            state = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("<%s> has an unparseable initial-state attribute", self.tag)
            return {}
        return state or {}

    def context(self) -> dict[str, Any]:
        state = self.get_initial_state()
        values = dict(state) if isinstance(state, Mapping) else {}
        values["state"] = state
        return values

    def render(self, env: Environment) -> Iterator[str]:
        """Render the shadow root content as a stream of chunks."""
        if not self.template:
            return iter(())
        return env.from_string(self.template).render_stream(self.context())
