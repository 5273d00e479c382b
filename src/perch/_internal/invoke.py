"""Call sync or async user callables uniformly.

Route handlers, state providers, and app lifecycle hooks may each be
``def`` or ``async def``::

    state = await invoke(provider, request, context)

The project's ``server.py`` hook is the exception: it must be a plain
function and is called directly by ``PodletServer``.
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it is awaitable."""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
