"""Response writers — turn an application response into a Lambda proxy response."""

import base64
from dataclasses import dataclass, field
from http import HTTPStatus

from serverless_container.config.settings import Settings
from serverless_container.exceptions import InvalidResponseObjectError
from serverless_container.models.events import AwsProxyResponse, HttpApiV2ProxyResponse
from serverless_container.proxy.request import EventType


@dataclass
class ProxyResponse:
    status_code: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    def header(self, name: str) -> str | None:
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return None


def write_response(
    response: ProxyResponse,
    event_type: EventType,
    settings: Settings,
    multi_value: bool = False,
) -> dict:
    """Serialize a ProxyResponse into the response dict for the event type."""
    try:
        body, is_base64 = encode_body(response, settings)
        if event_type is EventType.HTTP_V2:
            model = _http_v2_response(response, body, is_base64)
        elif event_type is EventType.ALB:
            model = _alb_response(response, body, is_base64, multi_value)
        else:
            model = _rest_response(response, body, is_base64)
        return model.to_wire()
    except InvalidResponseObjectError:
        raise
    except Exception as e:
        raise InvalidResponseObjectError(
            f"Could not write {event_type.value} response: {e}",
            context={"status_code": response.status_code},
        ) from e


def encode_body(response: ProxyResponse, settings: Settings) -> tuple[str, bool]:
    """Return the body as text plus whether it had to be base64-encoded."""
    if not response.body:
        return "", False

    content_type = response.header("content-type") or ""
    if is_binary_content_type(content_type, settings):
        return base64.b64encode(response.body).decode("ascii"), True

    charset = _charset(content_type) or settings.default_charset
    try:
        return response.body.decode(charset), False
    except (UnicodeDecodeError, LookupError):
        return base64.b64encode(response.body).decode("ascii"), True


def is_binary_content_type(content_type: str, settings: Settings) -> bool:
    media_type = content_type.split(";")[0].strip().lower()
    if not media_type:
        return False
    for pattern in settings.binary_media_types_list:
        if pattern in ("*/*", media_type):
            return True
        if pattern.endswith("/*") and media_type.startswith(pattern[:-1]):
            return True
    return False


def status_description(status_code: int) -> str:
    """ALB wants "<code> <reason phrase>"."""
    try:
        phrase = HTTPStatus(status_code).phrase
    except ValueError:
        phrase = "Unknown"
    return f"{status_code} {phrase}"


def _charset(content_type: str) -> str | None:
    for param in content_type.split(";")[1:]:
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset" and value.strip():
            return value.strip().strip('"')
    return None


def _grouped_headers(headers: list[tuple[str, str]]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {}
    for key, value in headers:
        grouped.setdefault(key, []).append(value)
    return grouped


def _rest_response(response: ProxyResponse, body: str, is_base64: bool) -> AwsProxyResponse:
    grouped = _grouped_headers(response.headers)
    return AwsProxyResponse(
        status_code=response.status_code,
        headers={key: values[-1] for key, values in grouped.items()},
        multi_value_headers=grouped,
        body=body,
        is_base64_encoded=is_base64,
    )


def _alb_response(
    response: ProxyResponse, body: str, is_base64: bool, multi_value: bool
) -> AwsProxyResponse:
    grouped = _grouped_headers(response.headers)
    # ALB rejects responses carrying both header maps
    if multi_value:
        headers, multi_value_headers = None, grouped
    else:
        headers, multi_value_headers = {key: values[-1] for key, values in grouped.items()}, None
    return AwsProxyResponse(
        status_code=response.status_code,
        status_description=status_description(response.status_code),
        headers=headers,
        multi_value_headers=multi_value_headers,
        body=body,
        is_base64_encoded=is_base64,
    )


def _http_v2_response(
    response: ProxyResponse, body: str, is_base64: bool
) -> HttpApiV2ProxyResponse:
    cookies = []
    headers: dict[str, str] = {}
    for key, values in _grouped_headers(response.headers).items():
        if key.lower() == "set-cookie":
            cookies.extend(values)
        else:
            headers[key] = ",".join(values)
    return HttpApiV2ProxyResponse(
        status_code=response.status_code,
        headers=headers,
        cookies=cookies or None,
        body=body,
        is_base64_encoded=is_base64,
    )
