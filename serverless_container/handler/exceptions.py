"""Exception handlers — the last line between an error and the API caller.

Every failure inside the container is answered with a fixed status code and a
JSON body carrying a generic message. Details only go to the log.

| Exception                                   | Status | Message               |
| ------------------------------------------- | ------ | --------------------- |
| InvalidRequestEventError                    | 500    | Internal Server Error |
| HTTPException with status 500               | 500    | Internal Server Error |
| InvalidResponseObjectError / anything else  | 502    | Gateway timeout       |
"""

import json
from abc import ABC, abstractmethod
from typing import BinaryIO

from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from serverless_container.exceptions import InvalidRequestEventError, get_error_context
from serverless_container.logging.audit import get_logger
from serverless_container.models.events import (
    AwsProxyResponse,
    ErrorModel,
    HttpApiV2ProxyResponse,
)
from serverless_container.proxy.response import status_description

INTERNAL_SERVER_ERROR = "Internal Server Error"
GATEWAY_TIMEOUT_ERROR = "Gateway timeout"
FALLBACK_ERROR_JSON = '{ "message": "Internal server error" }'

JSON_HEADERS = {"Content-Type": ["application/json"]}

logger = get_logger("exceptions")


def status_for(exc: BaseException) -> tuple[int, str]:
    """Map an exception to the (status code, message) returned to the caller."""
    if isinstance(exc, InvalidRequestEventError):
        return 500, INTERNAL_SERVER_ERROR
    if isinstance(exc, StarletteHTTPException) and exc.status_code == 500:
        return 500, INTERNAL_SERVER_ERROR
    return 502, GATEWAY_TIMEOUT_ERROR


def error_json(message: str) -> str:
    try:
        return ErrorModel(message=message).model_dump_json()
    except (ValueError, TypeError):
        logger.exception("Could not serialize error model")
        return FALLBACK_ERROR_JSON


class ExceptionHandler(ABC):
    """Turns an exception into the proxy response for one event family."""

    def handle(self, exc: BaseException) -> BaseModel:
        logger.error(
            "Called exception handler",
            exc_info=exc,
            extra={"audit_data": get_error_context(exc)},
        )
        status_code, message = status_for(exc)
        return self.build_response(status_code, error_json(message))

    def handle_stream(self, exc: BaseException, stream: BinaryIO) -> None:
        """Write the JSON of the error response to an output stream."""
        response = self.handle(exc)
        stream.write(json.dumps(response.to_wire()).encode("utf-8"))
        stream.flush()

    @abstractmethod
    def build_response(self, status_code: int, body: str) -> BaseModel:
        ...


class AwsProxyExceptionHandler(ExceptionHandler):
    """REST API flavour."""

    def build_response(self, status_code: int, body: str) -> AwsProxyResponse:
        return AwsProxyResponse(
            status_code=status_code,
            multi_value_headers={k: list(v) for k, v in JSON_HEADERS.items()},
            body=body,
        )


class HttpApiV2ExceptionHandler(ExceptionHandler):
    """HTTP API (payload format 2.0) flavour."""

    def build_response(self, status_code: int, body: str) -> HttpApiV2ProxyResponse:
        # HTTP APIs only read the single-value map
        return HttpApiV2ProxyResponse(
            status_code=status_code,
            headers={k: v[0] for k, v in JSON_HEADERS.items()},
            multi_value_headers={k: list(v) for k, v in JSON_HEADERS.items()},
            body=body,
        )


class AlbExceptionHandler(ExceptionHandler):
    """Application Load Balancer flavour.

    ALB reads either ``headers`` or ``multiValueHeaders``, depending on the
    target group setting, and expects a ``statusDescription``.
    """

    def __init__(self, multi_value: bool = True):
        self.multi_value = multi_value

    def build_response(self, status_code: int, body: str) -> AwsProxyResponse:
        response = AwsProxyResponse(
            status_code=status_code,
            status_description=status_description(status_code),
            body=body,
        )
        if self.multi_value:
            response.multi_value_headers = {k: list(v) for k, v in JSON_HEADERS.items()}
        else:
            response.headers = {k: v[0] for k, v in JSON_HEADERS.items()}
        return response
