"""Shared fixtures for the serverless-container test suite."""

import types
import uuid

import pytest
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from serverless_container.config.settings import get_settings


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set env vars and clear settings cache.

    Usage:
        override_settings(SC_STRIP_BASE_PATH="true", SC_SERVICE_BASE_PATH="/api")
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        # Clear lru_cache so Settings re-reads env
        get_settings.cache_clear()
        return get_settings()

    yield _override

    get_settings.cache_clear()


@pytest.fixture
def lambda_context():
    """A small stand-in for the LambdaContext object."""
    return types.SimpleNamespace(
        aws_request_id="req-" + uuid.uuid4().hex,
        function_name="container-test",
        invoked_function_arn="arn:aws:lambda:us-east-1:123456789012:function:container-test",
        get_remaining_time_in_millis=lambda: 30000,
    )


def build_fastapi_app() -> FastAPI:
    """Sample ASGI application exercised through the container handler."""
    app = FastAPI()

    @app.get("/echo/query")
    async def echo_query(request: Request):
        return {key: request.query_params.getlist(key) for key in request.query_params.keys()}

    @app.get("/echo/headers")
    async def echo_headers(request: Request):
        return {
            "headers": dict(request.headers),
            "cookies": request.cookies,
            "scheme": request.url.scheme,
            "client": request.client.host if request.client else None,
        }

    @app.post("/echo/body")
    async def echo_body(request: Request):
        body = await request.body()
        return Response(content=body, media_type=request.headers.get("content-type", "text/plain"))

    @app.post("/echo/json")
    async def echo_json(request: Request):
        return {"received": await request.json()}

    @app.get("/echo/scope")
    async def echo_scope(request: Request):
        return {
            "path": request.scope["path"],
            "root_path": request.scope["root_path"],
            "has_event": request.scope["aws.event"] is not None,
            "request_id": getattr(request.scope["aws.context"], "aws_request_id", None),
        }

    @app.get("/cookies")
    async def set_cookies():
        response = JSONResponse({"ok": True})
        response.set_cookie("session", "abc")
        response.set_cookie("theme", "dark")
        return response

    @app.get("/image")
    async def image():
        return Response(content=b"\x89PNG\r\n\x1a\n\x00\x01", media_type="image/png")

    @app.get("/status/{code}")
    async def status(code: int):
        return JSONResponse({"code": code}, status_code=code)

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    @app.get("/internal")
    async def internal():
        raise HTTPException(status_code=500, detail="internal")

    return app


def wsgi_app(environ, start_response):
    """Minimal PEP 3333 application echoing parts of the environ."""
    body = environ["wsgi.input"].read(int(environ.get("CONTENT_LENGTH") or 0))
    lines = [
        f"method={environ['REQUEST_METHOD']}",
        f"script_name={environ['SCRIPT_NAME']}",
        f"path={environ['PATH_INFO']}",
        f"query={environ['QUERY_STRING']}",
        f"cookie={environ.get('HTTP_COOKIE', '')}",
        f"body={body.decode('utf-8')}",
    ]
    payload = "\n".join(lines).encode("utf-8")
    start_response("201 Created", [
        ("Content-Type", "text/plain; charset=utf-8"),
        ("Set-Cookie", "a=1"),
        ("Set-Cookie", "b=2"),
    ])
    return [payload]


@pytest.fixture
def fastapi_app() -> FastAPI:
    return build_fastapi_app()
