"""Tests for perch.server.sender response emission rules."""

from perch.http.response import JSON, Response
from perch.server.sender import send_response


async def _collect(response: Response) -> list[dict]:
    messages: list[dict] = []

    async def send(message: dict) -> None:
        messages.append(message)

    await send_response(response, send)
    return messages


class TestSendResponse:
    async def test_200_preserves_body(self) -> None:
        messages = await _collect(Response("ok"))
        headers = dict(messages[0]["headers"])
        assert messages[0]["status"] == 200
        assert headers[b"content-length"] == b"2"
        assert messages[1]["body"] == b"ok"

    async def test_content_length_counts_bytes(self) -> None:
        messages = await _collect(Response("blåbær"))
        headers = dict(messages[0]["headers"])
        assert headers[b"content-length"] == str(len("blåbær".encode())).encode()

    async def test_content_type(self) -> None:
        messages = await _collect(Response.json({"name": "cart"}))
        headers = dict(messages[0]["headers"])
        assert headers[b"content-type"] == JSON.encode()

    async def test_custom_headers_lowercased(self) -> None:
        messages = await _collect(Response("ok").with_header("X-Podlet", "cart"))
        assert (b"x-podlet", b"cart") in messages[0]["headers"]

    async def test_204_drops_body(self) -> None:
        # Even if a handler attaches body content, 204 is sent without one.
        messages = await _collect(Response("unexpected-body").with_status(204))
        headers = dict(messages[0]["headers"])
        assert headers[b"content-length"] == b"0"
        assert messages[1]["body"] == b""

    async def test_304_drops_body(self) -> None:
        messages = await _collect(Response("unexpected-body").with_status(304))
        assert messages[1]["body"] == b""
