"""Tests for serverless_container/proxy/asgi.py — ASGI request cycle."""

import pytest

from serverless_container.exceptions import InvalidResponseObjectError
from serverless_container.proxy.asgi import build_scope, run_asgi
from serverless_container.proxy.request import EventType, ProxyRequest


@pytest.fixture
def request_obj() -> ProxyRequest:
    return ProxyRequest(
        event_type=EventType.REST,
        method="POST",
        path="/things",
        root_path="/prod",
        query_string=b"a=1",
        headers=[("content-type", "text/plain"), ("x-multi", "1"), ("x-multi", "2")],
        body=b"hello",
        client=("10.1.2.3", 0),
        raw_event={"httpMethod": "POST"},
    )


class TestBuildScope:

    def test_http_scope(self, request_obj):
        scope = build_scope(request_obj, context="ctx")
        assert scope["type"] == "http"
        assert scope["asgi"]["version"] == "3.0"
        assert scope["method"] == "POST"
        assert scope["path"] == "/prod/things"
        assert scope["raw_path"] == b"/prod/things"
        assert scope["root_path"] == "/prod"
        assert scope["query_string"] == b"a=1"
        assert scope["server"] == ("lambda-local", 443)
        assert scope["client"] == ("10.1.2.3", 0)
        assert scope["aws.event"] == {"httpMethod": "POST"}
        assert scope["aws.context"] == "ctx"

    def test_headers_are_bytes_and_repeated(self, request_obj):
        headers = build_scope(request_obj)["headers"]
        assert (b"x-multi", b"1") in headers
        assert (b"x-multi", b"2") in headers
        assert all(isinstance(k, bytes) and isinstance(v, bytes) for k, v in headers)

    def test_non_latin1_header_value_encoded_as_utf8(self, request_obj):
        request_obj.headers.append(("x-city", "東京"))
        headers = build_scope(request_obj)["headers"]
        assert (b"x-city", "東京".encode("utf-8")) in headers


class TestRunAsgi:

    async def test_echo_body_streamed_in_chunks(self, request_obj):
        async def app(scope, receive, send):
            message = await receive()
            await send({"type": "http.response.start", "status": 201,
                        "headers": [(b"content-type", b"text/plain")]})
            await send({"type": "http.response.body", "body": message["body"][:2], "more_body": True})
            await send({"type": "http.response.body", "body": message["body"][2:]})

        response = await run_asgi(app, request_obj)
        assert response.status_code == 201
        assert response.headers == [("content-type", "text/plain")]
        assert response.body == b"hello"

    async def test_second_receive_is_disconnect(self, request_obj):
        messages = []

        async def app(scope, receive, send):
            messages.append(await receive())
            await send({"type": "http.response.start", "status": 200, "headers": []})
            await send({"type": "http.response.body", "body": b""})
            messages.append(await receive())

        await run_asgi(app, request_obj)
        assert messages[0]["type"] == "http.request"
        assert messages[0]["more_body"] is False
        assert messages[1] == {"type": "http.disconnect"}

    async def test_error_before_start_propagates(self, request_obj):
        async def app(scope, receive, send):
            raise RuntimeError("broken app")

        with pytest.raises(RuntimeError, match="broken app"):
            await run_asgi(app, request_obj)

    async def test_error_after_start_keeps_response(self, request_obj):
        async def app(scope, receive, send):
            await send({"type": "http.response.start", "status": 500, "headers": []})
            await send({"type": "http.response.body", "body": b"Internal Server Error"})
            raise RuntimeError("re-raised by middleware")

        response = await run_asgi(app, request_obj)
        assert response.status_code == 500
        assert response.body == b"Internal Server Error"

    async def test_no_response_started(self, request_obj):
        async def app(scope, receive, send):
            return None

        with pytest.raises(InvalidResponseObjectError, match="without starting"):
            await run_asgi(app, request_obj)

    async def test_body_before_start(self, request_obj):
        async def app(scope, receive, send):
            await send({"type": "http.response.body", "body": b"x"})

        with pytest.raises(InvalidResponseObjectError, match="before http.response.start"):
            await run_asgi(app, request_obj)

    async def test_fastapi_app(self, fastapi_app):
        request = ProxyRequest(
            event_type=EventType.HTTP_V2,
            method="POST",
            path="/echo/json",
            headers=[("content-type", "application/json"), ("host", "api.example.com")],
            body=b'{"n": 1}',
        )
        response = await run_asgi(fastapi_app, request)
        assert response.status_code == 200
        assert response.body == b'{"received":{"n":1}}'
