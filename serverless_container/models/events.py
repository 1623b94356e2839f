"""Lambda proxy event and response models.

Field names are snake_case in Python and camelCase on the wire; dump with
``to_wire()`` to get the exact JSON shape API Gateway and ALB expect.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# --- REST API (payload format 1.0) ---


class RequestIdentity(EventModel):
    source_ip: str | None = None
    user_agent: str | None = None
    caller: str | None = None
    user: str | None = None
    user_arn: str | None = None
    access_key: str | None = None
    account_id: str | None = None
    cognito_identity_id: str | None = None
    cognito_identity_pool_id: str | None = None
    cognito_authentication_type: str | None = None
    cognito_authentication_provider: str | None = None


class ProxyRequestContext(EventModel):
    account_id: str | None = None
    api_id: str | None = None
    resource_id: str | None = None
    stage: str | None = None
    request_id: str | None = None
    extended_request_id: str | None = None
    protocol: str | None = None
    request_time: str | None = None
    request_time_epoch: int | None = None
    http_method: str | None = None
    path: str | None = None
    identity: RequestIdentity | None = None
    authorizer: dict[str, Any] | None = None


class AwsProxyRequest(EventModel):
    resource: str | None = None
    path: str | None = None
    http_method: str | None = None
    headers: dict[str, str] | None = None
    multi_value_headers: dict[str, list[str]] | None = None
    query_string_parameters: dict[str, str] | None = None
    multi_value_query_string_parameters: dict[str, list[str]] | None = None
    path_parameters: dict[str, str] | None = None
    stage_variables: dict[str, str] | None = None
    request_context: ProxyRequestContext | None = None
    body: str | None = None
    is_base64_encoded: bool = False


# --- HTTP API (payload format 2.0) ---


class HttpApiV2Http(EventModel):
    method: str | None = None
    path: str | None = None
    protocol: str | None = None
    source_ip: str | None = None
    user_agent: str | None = None


class HttpApiV2Jwt(EventModel):
    claims: dict[str, Any] = Field(default_factory=dict)
    scopes: list[str] | None = None


class HttpApiV2Authorizer(EventModel):
    jwt: HttpApiV2Jwt | None = None


class HttpApiV2RequestContext(EventModel):
    account_id: str | None = None
    api_id: str | None = None
    domain_name: str | None = None
    domain_prefix: str | None = None
    request_id: str | None = None
    route_key: str | None = None
    stage: str | None = None
    time: str | None = None
    time_epoch: int | None = None
    http: HttpApiV2Http | None = None
    authorizer: HttpApiV2Authorizer | None = None


class HttpApiV2ProxyRequest(EventModel):
    version: str | None = None
    route_key: str | None = None
    raw_path: str | None = None
    raw_query_string: str | None = None
    cookies: list[str] | None = None
    headers: dict[str, str] | None = None
    query_string_parameters: dict[str, str] | None = None
    path_parameters: dict[str, str] | None = None
    stage_variables: dict[str, str] | None = None
    request_context: HttpApiV2RequestContext | None = None
    body: str | None = None
    is_base64_encoded: bool = False


# --- Application Load Balancer ---


class Elb(EventModel):
    target_group_arn: str | None = None


class AlbRequestContext(EventModel):
    elb: Elb


class AlbRequest(EventModel):
    request_context: AlbRequestContext
    http_method: str | None = None
    path: str | None = None
    query_string_parameters: dict[str, str] | None = None
    multi_value_query_string_parameters: dict[str, list[str]] | None = None
    headers: dict[str, str] | None = None
    multi_value_headers: dict[str, list[str]] | None = None
    body: str | None = None
    is_base64_encoded: bool = False


# --- Responses ---


class AwsProxyResponse(EventModel):
    """Response shape shared by REST API and ALB integrations."""

    status_code: int
    status_description: str | None = None
    headers: dict[str, str] | None = None
    multi_value_headers: dict[str, list[str]] | None = None
    body: str | None = None
    is_base64_encoded: bool = False


class HttpApiV2ProxyResponse(EventModel):
    status_code: int
    headers: dict[str, str] | None = None
    multi_value_headers: dict[str, list[str]] | None = None
    cookies: list[str] | None = None
    body: str | None = None
    is_base64_encoded: bool = False


class ErrorModel(BaseModel):
    message: str
