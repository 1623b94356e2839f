"""Lambda entry point wrapping an ASGI or WSGI application.

    from serverless_container.handler.container import LambdaContainerHandler
    from myservice.app import app

    handler = LambdaContainerHandler(app)                    # FastAPI / Starlette
    handler = LambdaContainerHandler(app, interface="wsgi")  # Flask / Django

Pipeline: Detect event type -> Read event -> Run app -> Write response -> Log
"""

import asyncio
import copy
import json
from typing import Any, BinaryIO

from serverless_container.config.settings import Settings, get_settings
from serverless_container.exceptions import (
    ContainerInitializationError,
    InvalidRequestEventError,
)
from serverless_container.handler.exceptions import (
    AlbExceptionHandler,
    AwsProxyExceptionHandler,
    ExceptionHandler,
    HttpApiV2ExceptionHandler,
)
from serverless_container.logging.audit import (
    RequestTimer,
    bind_request_id,
    get_logger,
    setup_logging,
)
from serverless_container.proxy.asgi import run_asgi
from serverless_container.proxy.request import EventType, ProxyRequest, detect_event_type, read_event
from serverless_container.proxy.response import ProxyResponse, write_response
from serverless_container.proxy.wsgi import run_wsgi

SUPPORTED_INTERFACES = ("asgi", "wsgi")

logger = get_logger("container")


class LambdaContainerHandler:
    """Translates proxy events for a web application, one invocation at a time."""

    def __init__(
        self,
        app,
        interface: str = "asgi",
        settings: Settings | None = None,
        exception_handlers: dict[EventType, ExceptionHandler] | None = None,
    ):
        if interface not in SUPPORTED_INTERFACES:
            raise ContainerInitializationError(
                f"Unsupported interface: {interface}",
                context={"supported": list(SUPPORTED_INTERFACES)},
            )
        if not callable(app):
            raise ContainerInitializationError("Application is not callable")

        self.app = app
        self.interface = interface
        self.settings = settings or get_settings()
        self.exception_handlers: dict[EventType, ExceptionHandler] = {
            EventType.REST: AwsProxyExceptionHandler(),
            EventType.ALB: AlbExceptionHandler(),
            EventType.HTTP_V2: HttpApiV2ExceptionHandler(),
        }
        self.exception_handlers.update(exception_handlers or {})
        # Reused across warm invocations so loop-bound clients survive
        self._loop: asyncio.AbstractEventLoop | None = None

        setup_logging(self.settings)

    def __call__(self, event: dict, context: Any = None) -> dict:
        with bind_request_id(context):
            event_type = EventType.REST
            try:
                event_type = detect_event_type(event)
                request = read_event(event, self.settings)

                with RequestTimer() as timer:
                    response = self._run(request, context)

                result = write_response(response, event_type, self.settings, request.multi_value)

                logger.info(
                    "Request proxied",
                    extra={"audit_data": {
                        "event_type": event_type.value,
                        "method": request.method,
                        "path": request.path,
                        "status": response.status_code,
                        "latency_ms": timer.elapsed_ms,
                    }},
                )
                return result
            except Exception as exc:
                return self._exception_handler(event_type, event).handle(exc).to_wire()

    def _exception_handler(self, event_type: EventType, event: Any) -> ExceptionHandler:
        handler = self.exception_handlers[event_type]
        if isinstance(handler, AlbExceptionHandler):
            # Answer in the header mode the target group sent the request in
            multi_value = isinstance(event, dict) and event.get("multiValueHeaders") is not None
            if handler.multi_value != multi_value:
                handler = copy.copy(handler)
                handler.multi_value = multi_value
        return handler

    def proxy_stream(self, input_stream: BinaryIO, output_stream: BinaryIO, context: Any = None) -> None:
        """Stream variant of the entry point: JSON event in, JSON response out."""
        try:
            event = json.load(input_stream)
        except (ValueError, UnicodeDecodeError) as e:
            error = InvalidRequestEventError(f"Could not parse event JSON: {e}")
            self.exception_handlers[EventType.REST].handle_stream(error, output_stream)
            return

        result = self(event, context)
        output_stream.write(json.dumps(result).encode("utf-8"))
        output_stream.flush()

    def _run(self, request: ProxyRequest, context: Any) -> ProxyResponse:
        if self.interface == "wsgi":
            return run_wsgi(self.app, request, context)
        return self._get_loop().run_until_complete(run_asgi(self.app, request, context))

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.new_event_loop()
        return self._loop

    def close(self) -> None:
        """Close the private event loop. Only needed outside Lambda."""
        if self._loop is not None and not self._loop.is_closed():
            self._loop.close()
        self._loop = None
