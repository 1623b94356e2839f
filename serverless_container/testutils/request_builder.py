"""Fluent builder for synthetic proxy events, used by unit tests.

Builds a REST API (payload 1.0) event and can convert it to the ALB and
HTTP API (payload 2.0) shapes:

    event = (
        ProxyRequestBuilder("/echo", "POST")
        .json()
        .body_object({"hello": "world"})
        .to_http_api_v2_request()
    )
"""

import base64
import io
import json
import time
import uuid
from pathlib import Path
from urllib.parse import quote_plus

import httpx

from serverless_container.models.events import (
    AlbRequest,
    AlbRequestContext,
    AwsProxyRequest,
    Elb,
    HttpApiV2Authorizer,
    HttpApiV2Http,
    HttpApiV2Jwt,
    HttpApiV2ProxyRequest,
    HttpApiV2RequestContext,
    ProxyRequestContext,
    RequestIdentity,
)

CONTENT_TYPE = "Content-Type"
CONTENT_LENGTH = "Content-Length"
COOKIE = "Cookie"
AUTHORIZATION = "Authorization"
APPLICATION_JSON = "application/json"
APPLICATION_FORM_URLENCODED = "application/x-www-form-urlencoded"

ALB_TARGET_GROUP_ARN = (
    "arn:aws:elasticloadbalancing:us-east-1:123456789012:"
    "targetgroup/lambda-target/d6190d154bc908a5"
)


class ProxyRequestBuilder:
    """Builds API Gateway REST proxy events one field at a time."""

    def __init__(self, path: str | None = None, method: str | None = None):
        self.request = AwsProxyRequest(
            path=path,
            http_method=method,
            multi_value_headers={},
            multi_value_query_string_parameters={},
            request_context=ProxyRequestContext(
                request_id=str(uuid.uuid4()),
                extended_request_id=str(uuid.uuid4()),
                stage="test",
                protocol="HTTP/1.1",
                request_time_epoch=int(time.time() * 1000),
                identity=RequestIdentity(source_ip="127.0.0.1"),
            ),
            is_base64_encoded=False,
        )
        self._multipart_parts: list[tuple[str, tuple]] = []

    # --- request line ---

    def stage(self, stage_name: str) -> "ProxyRequestBuilder":
        self._context().stage = stage_name
        return self

    def method(self, http_method: str) -> "ProxyRequestBuilder":
        self.request.http_method = http_method
        return self

    def path(self, path: str) -> "ProxyRequestBuilder":
        self.request.path = path
        return self

    def api_id(self, api_id: str) -> "ProxyRequestBuilder":
        self._context().api_id = api_id
        return self

    # --- headers ---

    def header(self, key: str, value: str) -> "ProxyRequestBuilder":
        """Add a header value, keeping any values already set for the name."""
        headers = self._headers()
        existing = _find_key(headers, key)
        if existing is not None:
            headers[existing].append(value)
        else:
            headers[key] = [value]
        return self

    def multi_value_headers(self, headers: dict[str, list[str]]) -> "ProxyRequestBuilder":
        self.request.multi_value_headers = headers
        return self

    def json(self) -> "ProxyRequestBuilder":
        return self.header(CONTENT_TYPE, APPLICATION_JSON)

    def cookie(self, name: str, value: str) -> "ProxyRequestBuilder":
        cookies = self._first_header(COOKIE) or ""
        cookies += ("; " if cookies else "") + f"{name}={value}"
        self._put_single(COOKIE, cookies)
        return self

    def scheme(self, scheme: str) -> "ProxyRequestBuilder":
        self._put_single("CloudFront-Forwarded-Proto", scheme)
        return self

    def server_name(self, server_name: str) -> "ProxyRequestBuilder":
        self._put_single("Host", server_name)
        return self

    def basic_auth(self, username: str, password: str) -> "ProxyRequestBuilder":
        token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
        self._put_single(AUTHORIZATION, f"Basic {token}")
        return self

    # --- query string ---

    def query_string(self, key: str, value: str) -> "ProxyRequestBuilder":
        if self.request.multi_value_query_string_parameters is None:
            self.request.multi_value_query_string_parameters = {}
        self.request.multi_value_query_string_parameters.setdefault(key, []).append(value)
        return self

    def multi_value_query_string(self, params: dict[str, list[str]]) -> "ProxyRequestBuilder":
        self.request.multi_value_query_string_parameters = params
        return self

    # --- body ---

    def body(self, body: str) -> "ProxyRequestBuilder":
        self.request.body = body
        return self

    def null_body(self) -> "ProxyRequestBuilder":
        self.request.body = None
        return self

    def body_object(self, body) -> "ProxyRequestBuilder":
        """Serialize an object as the body; only JSON requests are supported."""
        content_type = self._first_header(CONTENT_TYPE)
        if content_type is None or not content_type.startswith(APPLICATION_JSON):
            raise ValueError("Unsupported content type in request")
        try:
            return self.body(json.dumps(body))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Could not serialize object: {e}") from e

    def binary_body(self, stream: io.BufferedIOBase) -> "ProxyRequestBuilder":
        self.request.is_base64_encoded = True
        return self.body(base64.b64encode(stream.read()).decode("ascii"))

    def form(self, key: str, value: str) -> "ProxyRequestBuilder":
        """Append a url-encoded form field to the body."""
        headers = self._headers()
        content_type_key = _find_key(headers, CONTENT_TYPE) or CONTENT_TYPE
        values = headers.setdefault(content_type_key, [])
        if APPLICATION_FORM_URLENCODED not in values:
            values.append(APPLICATION_FORM_URLENCODED)
        body = self.request.body or ""
        self.request.body = body + ("&" if body else "") + f"{key}={value}"
        return self

    def form_file_part(self, field_name: str, file_name: str, content: bytes) -> "ProxyRequestBuilder":
        self._multipart_parts.append((field_name, (file_name, content, "application/octet-stream")))
        self._build_multipart_body()
        return self

    def form_text_field_part(self, field_name: str, field_value: str) -> "ProxyRequestBuilder":
        self._multipart_parts.append((field_name, (None, field_value, "text/plain")))
        self._build_multipart_body()
        return self

    # --- identity and authorizer ---

    def authorizer_principal(self, principal: str) -> "ProxyRequestBuilder":
        authorizer = self._authorizer()
        authorizer["principalId"] = principal
        authorizer.setdefault("claims", {})["sub"] = principal
        return self

    def authorizer_context_value(self, key: str, value: str) -> "ProxyRequestBuilder":
        self._authorizer()[key] = value
        return self

    def cognito_user_pool(self, identity_id: str) -> "ProxyRequestBuilder":
        identity = self._identity()
        identity.cognito_authentication_type = "POOL"
        identity.cognito_identity_id = identity_id
        self._authorizer()["claims"] = {"sub": identity_id}
        return self

    def claim(self, claim: str, value: str) -> "ProxyRequestBuilder":
        self._authorizer().setdefault("claims", {})[claim] = value
        return self

    def cognito_identity(self, identity_id: str, identity_pool_id: str) -> "ProxyRequestBuilder":
        identity = self._identity()
        identity.cognito_authentication_type = "IDENTITY"
        identity.cognito_identity_id = identity_id
        identity.cognito_identity_pool_id = identity_pool_id
        return self

    def user_agent(self, agent: str) -> "ProxyRequestBuilder":
        self._identity().user_agent = agent
        return self

    def referer(self, referer: str) -> "ProxyRequestBuilder":
        self._identity().caller = referer
        return self

    # --- loading ---

    def from_json_string(self, content: str) -> "ProxyRequestBuilder":
        self.request = AwsProxyRequest.model_validate_json(content)
        return self

    def from_json_path(self, file_path: str | Path) -> "ProxyRequestBuilder":
        return self.from_json_string(Path(file_path).read_text(encoding="utf-8"))

    # --- terminal operations ---

    def build(self) -> dict:
        """The REST API event as Lambda delivers it."""
        return self.request.to_wire()

    def build_stream(self) -> io.BytesIO:
        return _to_stream(self.build())

    def to_alb_request(self) -> dict:
        return AlbRequest(
            request_context=AlbRequestContext(elb=Elb(target_group_arn=ALB_TARGET_GROUP_ARN)),
            http_method=self.request.http_method,
            path=self.request.path,
            query_string_parameters=self.request.query_string_parameters,
            multi_value_query_string_parameters=self.request.multi_value_query_string_parameters,
            headers=self.request.headers,
            multi_value_headers=self.request.multi_value_headers,
            body=self.request.body,
            is_base64_encoded=self.request.is_base64_encoded,
        ).to_wire()

    def to_alb_request_stream(self) -> io.BytesIO:
        return _to_stream(self.to_alb_request())

    def to_http_api_v2_request(self) -> dict:
        source = self.request
        multi_headers = source.multi_value_headers or {}
        context = source.request_context
        identity = context.identity if context is not None else None

        cookies = None
        headers: dict[str, str] = {}
        for key, values in multi_headers.items():
            if key.lower() == COOKIE.lower():
                if values:
                    cookies = values[0].split(";")
            elif values:
                headers[key] = values[0]
        if identity is not None:
            if identity.caller is not None:
                headers["Referer"] = identity.caller
            if identity.user_agent is not None:
                headers["User-Agent"] = identity.user_agent

        raw_query_string = None
        if source.multi_value_query_string_parameters:
            # Commas stay literal: tests use them inside values
            raw_query_string = "&".join(
                f"{quote_plus(key)}={quote_plus(value).replace('%2C', ',')}"
                for key, values in source.multi_value_query_string_parameters.items()
                for value in values
            ) or None

        http = HttpApiV2Http(
            method=source.http_method,
            path=source.path,
            protocol="HTTP/1.1",
            source_ip=identity.source_ip if identity is not None and identity.source_ip else "127.0.0.1",
            user_agent=identity.user_agent if identity is not None else None,
        )
        request_context = HttpApiV2RequestContext(http=http)
        if context is not None:
            request_context.account_id = context.account_id
            request_context.api_id = context.api_id
            request_context.domain_name = f"{context.api_id}.execute-api.us-east-1.apigateway.com"
            request_context.domain_prefix = context.api_id
            request_context.request_id = context.request_id
            request_context.route_key = "$default"
            request_context.stage = context.stage
            request_context.time_epoch = context.request_time_epoch
            request_context.time = context.request_time
            if context.authorizer is not None:
                request_context.authorizer = HttpApiV2Authorizer(
                    jwt=HttpApiV2Jwt(claims={}, scopes=[])
                )

        return HttpApiV2ProxyRequest(
            version="2.0",
            route_key="$default",
            raw_path=source.path,
            raw_query_string=raw_query_string,
            cookies=cookies,
            headers=headers,
            stage_variables=source.stage_variables,
            request_context=request_context,
            body=source.body,
            is_base64_encoded=source.is_base64_encoded,
        ).to_wire()

    def to_http_api_v2_request_stream(self) -> io.BytesIO:
        return _to_stream(self.to_http_api_v2_request())

    # --- internals ---

    def _build_multipart_body(self) -> None:
        encoded = httpx.Request("POST", "http://localhost/", files=self._multipart_parts)
        content = encoded.read()
        self.request.body = base64.b64encode(content).decode("ascii")
        self.request.is_base64_encoded = True
        self.request.multi_value_headers = {}
        self.header(CONTENT_TYPE, encoded.headers["Content-Type"])
        self.header(CONTENT_LENGTH, str(len(content)))

    def _headers(self) -> dict[str, list[str]]:
        if self.request.multi_value_headers is None:
            self.request.multi_value_headers = {}
        return self.request.multi_value_headers

    def _first_header(self, key: str) -> str | None:
        headers = self._headers()
        existing = _find_key(headers, key)
        if existing is None or not headers[existing]:
            return None
        return headers[existing][0]

    def _put_single(self, key: str, value: str) -> None:
        headers = self._headers()
        headers[_find_key(headers, key) or key] = [value]

    def _context(self) -> ProxyRequestContext:
        if self.request.request_context is None:
            self.request.request_context = ProxyRequestContext()
        return self.request.request_context

    def _identity(self) -> RequestIdentity:
        context = self._context()
        if context.identity is None:
            context.identity = RequestIdentity()
        return context.identity

    def _authorizer(self) -> dict:
        context = self._context()
        if context.authorizer is None:
            context.authorizer = {}
        return context.authorizer


def _find_key(headers: dict[str, list[str]], key: str) -> str | None:
    """Header names are case-insensitive; return the stored spelling."""
    lowered = key.lower()
    for existing in headers:
        if existing.lower() == lowered:
            return existing
    return None


def _to_stream(event: dict) -> io.BytesIO:
    return io.BytesIO(json.dumps(event).encode("utf-8"))
