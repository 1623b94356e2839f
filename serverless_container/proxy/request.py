"""Event readers — turn a Lambda proxy event into a framework-neutral request.

Each supported event shape has its own reader. All of them produce a
ProxyRequest, which the ASGI and WSGI drivers consume.
"""

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import quote, urlencode

from pydantic import ValidationError

from serverless_container.config.settings import Settings
from serverless_container.exceptions import InvalidRequestEventError
from serverless_container.models.events import (
    AlbRequest,
    AwsProxyRequest,
    HttpApiV2ProxyRequest,
)

DEFAULT_SERVER_NAME = "lambda-local"


class EventType(str, Enum):
    REST = "rest"
    HTTP_V2 = "http_v2"
    ALB = "alb"


@dataclass
class ProxyRequest:
    event_type: EventType
    method: str
    path: str
    root_path: str = ""
    query_string: bytes = b""
    headers: list[tuple[str, str]] = field(default_factory=list)  # lower-case names
    body: bytes = b""
    scheme: str = "https"
    server_name: str = DEFAULT_SERVER_NAME
    server_port: int = 443
    client: tuple[str, int] | None = None
    multi_value: bool = False  # ALB: answer with multiValueHeaders
    raw_event: dict = field(default_factory=dict)

    def header(self, name: str) -> str | None:
        """First value of a header, case-insensitive."""
        name = name.lower()
        for key, value in self.headers:
            if key == name:
                return value
        return None


def detect_event_type(event) -> EventType:
    """Work out which integration produced the event."""
    if not isinstance(event, dict):
        raise InvalidRequestEventError(
            f"Expected a JSON object event, got {type(event).__name__}"
        )
    if event.get("version") == "2.0":
        return EventType.HTTP_V2
    request_context = event.get("requestContext")
    if isinstance(request_context, dict) and "elb" in request_context:
        return EventType.ALB
    if "httpMethod" in event:
        return EventType.REST
    raise InvalidRequestEventError(
        "Unsupported event: not an API Gateway or ALB proxy event",
        context={"keys": sorted(event)},
    )


def read_event(event: dict, settings: Settings) -> ProxyRequest:
    """Detect the event type and read it into a ProxyRequest."""
    event_type = detect_event_type(event)
    try:
        if event_type is EventType.HTTP_V2:
            request = _read_http_v2(HttpApiV2ProxyRequest.model_validate(event), settings)
        elif event_type is EventType.ALB:
            request = _read_alb(AlbRequest.model_validate(event), settings)
        else:
            request = _read_rest(AwsProxyRequest.model_validate(event), settings)
    except ValidationError as e:
        raise InvalidRequestEventError(
            f"Malformed {event_type.value} event: {e.error_count()} validation error(s)",
            context={"errors": e.errors(include_url=False)},
        ) from e

    request.raw_event = event
    request.path = _strip_base_path(request.path, settings)
    return request


def _read_rest(event: AwsProxyRequest, settings: Settings) -> ProxyRequest:
    if not event.http_method or not event.path:
        raise InvalidRequestEventError("REST event is missing httpMethod or path")

    headers = _merge_headers(event.headers, event.multi_value_headers)
    context = event.request_context
    source_ip = None
    root_path = ""
    if context is not None:
        if context.identity is not None:
            source_ip = context.identity.source_ip
        root_path = _stage_root_path(context.stage, settings)

    request = ProxyRequest(
        event_type=EventType.REST,
        method=event.http_method.upper(),
        path=event.path,
        root_path=root_path,
        query_string=_encode_query(
            event.query_string_parameters, event.multi_value_query_string_parameters
        ),
        headers=headers,
        body=_decode_body(event.body, event.is_base64_encoded, settings),
    )
    _apply_forwarding(request, headers, source_ip)
    return request


def _read_http_v2(event: HttpApiV2ProxyRequest, settings: Settings) -> ProxyRequest:
    context = event.request_context
    http = context.http if context is not None else None
    if http is None or not http.method:
        raise InvalidRequestEventError("HTTP API event is missing requestContext.http.method")

    path = event.raw_path or http.path
    if not path:
        raise InvalidRequestEventError("HTTP API event is missing rawPath")

    headers = _merge_headers(event.headers, None)
    if event.cookies:
        headers = [(k, v) for k, v in headers if k != "cookie"]
        headers.append(("cookie", "; ".join(c.strip() for c in event.cookies)))

    request = ProxyRequest(
        event_type=EventType.HTTP_V2,
        method=http.method.upper(),
        path=path,
        root_path=_stage_root_path(context.stage, settings),
        query_string=_quote_raw_query(event.raw_query_string or ""),
        headers=headers,
        body=_decode_body(event.body, event.is_base64_encoded, settings),
    )
    _apply_forwarding(request, headers, http.source_ip)
    return request


def _read_alb(event: AlbRequest, settings: Settings) -> ProxyRequest:
    if not event.http_method or not event.path:
        raise InvalidRequestEventError("ALB event is missing httpMethod or path")

    headers = _merge_headers(event.headers, event.multi_value_headers)

    # ALB hands over query parameters still URL-encoded
    if event.multi_value_query_string_parameters:
        pairs = [
            f"{key}={value}"
            for key, values in event.multi_value_query_string_parameters.items()
            for value in values
        ]
    else:
        pairs = [f"{key}={value}" for key, value in (event.query_string_parameters or {}).items()]

    request = ProxyRequest(
        event_type=EventType.ALB,
        method=event.http_method.upper(),
        path=event.path,
        query_string=_quote_raw_query("&".join(pairs)),
        headers=headers,
        body=_decode_body(event.body, event.is_base64_encoded, settings),
        multi_value=event.multi_value_headers is not None,
    )
    forwarded_for = request.header("x-forwarded-for")
    source_ip = forwarded_for.split(",")[0].strip() if forwarded_for else None
    _apply_forwarding(request, headers, source_ip)
    return request


def _merge_headers(
    single: dict[str, str] | None, multi: dict[str, list[str]] | None
) -> list[tuple[str, str]]:
    """Flatten header maps; the multi-value map wins when both are present."""
    if multi:
        return [(key.lower(), value) for key, values in multi.items() for value in values]
    return [(key.lower(), value) for key, value in (single or {}).items()]


def _encode_query(
    single: dict[str, str] | None, multi: dict[str, list[str]] | None
) -> bytes:
    if multi:
        return urlencode(multi, doseq=True).encode("ascii")
    if single:
        return urlencode(single).encode("ascii")
    return b""


# Printable ASCII passes through untouched, existing %XX escapes included
_QUERY_SAFE = "".join(chr(c) for c in range(0x21, 0x7F))


def _quote_raw_query(query: str) -> bytes:
    """Percent-encode non-ASCII characters of an already encoded query string as UTF-8."""
    return quote(query, safe=_QUERY_SAFE, encoding="utf-8").encode("ascii")


def _decode_body(body: str | None, is_base64: bool, settings: Settings) -> bytes:
    if body is None:
        return b""
    if is_base64:
        try:
            # MIME encoders wrap lines
            return base64.b64decode("".join(body.split()), validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidRequestEventError("Request body is not valid base64") from e
    return body.encode(settings.default_charset)


def _stage_root_path(stage: str | None, settings: Settings) -> str:
    if not settings.use_stage_as_root_path or not stage or stage == "$default":
        return ""
    return f"/{stage}"


def _strip_base_path(path: str, settings: Settings) -> str:
    base = settings.normalized_base_path
    if not settings.strip_base_path or not base:
        return path
    if path == base:
        return "/"
    if path.startswith(base + "/"):
        return path[len(base):]
    return path


def _apply_forwarding(
    request: ProxyRequest, headers: list[tuple[str, str]], source_ip: str | None
) -> None:
    """Fill scheme, server and client from forwarding headers."""
    lookup = dict(reversed(headers))  # first value wins

    scheme = lookup.get("x-forwarded-proto") or lookup.get("cloudfront-forwarded-proto")
    request.scheme = (scheme or "https").split(",")[0].strip().lower()

    host = lookup.get("host")
    port = None
    if host:
        name, sep, host_port = host.rpartition(":")
        if sep and host_port.isdigit():
            host, port = name, int(host_port)
        request.server_name = host
    forwarded_port = lookup.get("x-forwarded-port", "")
    if forwarded_port.isdigit():
        port = int(forwarded_port)
    request.server_port = port or (80 if request.scheme == "http" else 443)

    if source_ip:
        request.client = (source_ip, 0)
