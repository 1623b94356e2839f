"""ASGI driver — runs one HTTP request/response cycle through an ASGI app.

The whole request body is delivered in a single http.request message and the
response is buffered until the app sends the final body chunk.
"""

import asyncio
from typing import Any

from serverless_container.exceptions import InvalidResponseObjectError
from serverless_container.logging.audit import get_logger
from serverless_container.proxy.request import ProxyRequest
from serverless_container.proxy.response import ProxyResponse

logger = get_logger("asgi")


def build_scope(request: ProxyRequest, context: Any = None) -> dict:
    """Build the ASGI HTTP connection scope for a request."""
    path = request.root_path + request.path
    return {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": "2.3"},
        "http_version": "1.1",
        "method": request.method,
        "scheme": request.scheme,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "root_path": request.root_path,
        "query_string": request.query_string,
        "headers": [
            (key.encode("utf-8"), value.encode("utf-8")) for key, value in request.headers
        ],
        "server": (request.server_name, request.server_port),
        "client": request.client,
        "aws.event": request.raw_event,
        "aws.context": context,
    }


class HTTPCycle:
    """State for a single ASGI HTTP exchange."""

    def __init__(self, request: ProxyRequest):
        self.request = request
        self.status_code: int | None = None
        self.headers: list[tuple[str, str]] = []
        self.body = bytearray()
        self.complete = False
        self._request_sent = False
        self._disconnected = asyncio.Event()

    async def run(self, app, context: Any = None) -> ProxyResponse:
        scope = build_scope(self.request, context)
        try:
            await app(scope, self.receive, self.send)
        except Exception:
            if self.status_code is None:
                raise
            # Starlette's error middleware sends its 500 and then re-raises
            logger.exception("ASGI app raised after starting the response")
        finally:
            self._disconnected.set()

        if self.status_code is None:
            raise InvalidResponseObjectError("ASGI app returned without starting a response")
        return ProxyResponse(
            status_code=self.status_code,
            headers=self.headers,
            body=bytes(self.body),
        )

    async def receive(self) -> dict:
        if not self._request_sent:
            self._request_sent = True
            return {"type": "http.request", "body": self.request.body, "more_body": False}
        # Nothing more to read; park until the exchange is over
        await self._disconnected.wait()
        return {"type": "http.disconnect"}

    async def send(self, message: dict) -> None:
        message_type = message["type"]

        if message_type == "http.response.start":
            if self.status_code is not None:
                raise InvalidResponseObjectError("http.response.start sent twice")
            self.status_code = int(message["status"])
            self.headers = [
                (_to_str(key), _to_str(value)) for key, value in message.get("headers", [])
            ]
        elif message_type == "http.response.body":
            if self.status_code is None:
                raise InvalidResponseObjectError("http.response.body sent before http.response.start")
            if self.complete:
                return
            self.body.extend(message.get("body", b""))
            if not message.get("more_body", False):
                self.complete = True
                self._disconnected.set()
        else:
            raise InvalidResponseObjectError(f"Unexpected ASGI message type: {message_type}")


async def run_asgi(app, request: ProxyRequest, context: Any = None) -> ProxyResponse:
    return await HTTPCycle(request).run(app, context)


def _to_str(value) -> str:
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return str(value)
