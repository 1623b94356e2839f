"""WSGI driver — runs a PEP 3333 application against a ProxyRequest."""

import io
import sys
from typing import Any

from serverless_container.exceptions import InvalidResponseObjectError
from serverless_container.proxy.request import ProxyRequest
from serverless_container.proxy.response import ProxyResponse

# Headers with dedicated environ keys
_SPECIAL_HEADERS = {"content-type": "CONTENT_TYPE", "content-length": "CONTENT_LENGTH"}


def build_environ(request: ProxyRequest, context: Any = None) -> dict:
    environ = {
        "REQUEST_METHOD": request.method,
        # PEP 3333: native strings carrying the raw bytes as latin-1
        "SCRIPT_NAME": request.root_path.encode("utf-8").decode("latin-1"),
        "PATH_INFO": request.path.encode("utf-8").decode("latin-1"),
        "QUERY_STRING": request.query_string.decode("latin-1"),
        "SERVER_NAME": request.server_name,
        "SERVER_PORT": str(request.server_port),
        "SERVER_PROTOCOL": "HTTP/1.1",
        "REMOTE_ADDR": request.client[0] if request.client else "127.0.0.1",
        "CONTENT_LENGTH": str(len(request.body)),
        "wsgi.version": (1, 0),
        "wsgi.url_scheme": request.scheme,
        "wsgi.input": io.BytesIO(request.body),
        "wsgi.errors": sys.stderr,
        "wsgi.multithread": False,
        "wsgi.multiprocess": False,
        "wsgi.run_once": False,
        "aws.event": request.raw_event,
        "aws.context": context,
    }
    for key, value in request.headers:
        if key == "content-length":
            continue
        name = _SPECIAL_HEADERS.get(key) or "HTTP_" + key.upper().replace("-", "_")
        native = value.encode("utf-8").decode("latin-1")
        if name in environ and name.startswith("HTTP_"):
            # Repeated headers fold into one comma-separated value
            separator = "; " if name == "HTTP_COOKIE" else ","
            environ[name] = f"{environ[name]}{separator}{native}"
        else:
            environ[name] = native
    return environ


def run_wsgi(app, request: ProxyRequest, context: Any = None) -> ProxyResponse:
    environ = build_environ(request, context)
    started: dict = {}

    def start_response(status, headers, exc_info=None):
        if exc_info:
            # Output is buffered until the app returns; the error response replaces it
            body.clear()
        started["status"] = status
        started["headers"] = headers
        return body.extend

    body = bytearray()
    result = app(environ, start_response)
    try:
        for chunk in result:
            body.extend(chunk)
    finally:
        if hasattr(result, "close"):
            result.close()

    if "status" not in started:
        raise InvalidResponseObjectError("WSGI app returned without calling start_response")
    try:
        status_code = int(started["status"].split(" ", 1)[0])
    except ValueError as e:
        raise InvalidResponseObjectError(f"Invalid WSGI status line: {started['status']!r}") from e

    return ProxyResponse(
        status_code=status_code,
        headers=[(str(key), str(value)) for key, value in started["headers"]],
        body=bytes(body),
    )
