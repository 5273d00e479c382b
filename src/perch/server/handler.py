"""ASGI handler — translates ASGI scope/messages to perch types.

The only component that touches raw ASGI HTTP messages. Builds a
Request, runs the middleware chain around routing, converts handler
results to a Response, and sends it.
"""

import json
from collections.abc import Callable, Mapping
from typing import Any

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.invoke import invoke
from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import Redirect, Response
from perch.middleware.protocol import Next
from perch.routing.router import Router
from perch.server.errors import handle_http_error, handle_internal_error
from perch.server.sender import send_response


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    router: Router,
    middleware: tuple[Callable[..., Any], ...],
    debug: bool,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)

    async def dispatch(req: Request) -> Response:
        match = router.match(req.method, req.path)
        routed = req.routed(match.route, match.path_params)
        return to_response(await invoke(match.route.handler, routed))

    handler: Next = dispatch
    for mw in reversed(middleware):

        async def make_next(req: Request, _mw: Any = mw, _next: Next = handler) -> Response:
            return await _mw(req, _next)

        handler = make_next

    try:
        response = await handler(request)
    except HTTPError as exc:
        response = handle_http_error(exc, request, debug)
    except Exception as exc:
        response = handle_internal_error(exc, request, debug)

    if request.method == "HEAD":
        response = Response(
            body=b"",
            status=response.status,
            content_type=response.content_type,
            headers=response.headers,
        )
    await send_response(response, send)


def to_response(result: Any) -> Response:
    """Convert a handler return value into a Response.

    - ``Response`` — passed through
    - ``Redirect`` — ``Location`` header response
    - ``str`` / ``bytes`` — HTML body
    - mapping or list — JSON body
    """
    if isinstance(result, Response):
        return result
    if isinstance(result, Redirect):
        return result.to_response()
    if isinstance(result, (str, bytes)):
        return Response(body=result)
    if isinstance(result, (Mapping, list)):
        return Response.json(json.dumps(result))
    msg = f"Cannot convert handler result of type {type(result).__name__} to a response"
    raise TypeError(msg)
