"""Tests for serverless_container/models/events.py — wire format of event models."""

import pytest
from pydantic import ValidationError

from serverless_container.models.events import (
    AlbRequest,
    AwsProxyRequest,
    AwsProxyResponse,
    HttpApiV2ProxyRequest,
    HttpApiV2ProxyResponse,
)


@pytest.fixture
def rest_event() -> dict:
    """Trimmed REST API proxy event as delivered by API Gateway."""
    return {
        "resource": "/{proxy+}",
        "path": "/hello/world",
        "httpMethod": "POST",
        "headers": {"Accept": "*/*"},
        "multiValueHeaders": {"Accept": ["*/*"]},
        "queryStringParameters": {"name": "me"},
        "multiValueQueryStringParameters": {"name": ["me"]},
        "pathParameters": {"proxy": "hello/world"},
        "stageVariables": None,
        "requestContext": {
            "accountId": "123456789012",
            "resourceId": "us4z18",
            "stage": "test",
            "requestId": "41b45ea3-70b5-11e6-b7bd-69b5aaebc7d9",
            "identity": {"sourceIp": "192.168.100.1", "userAgent": "curl/7.64"},
            "authorizer": {"principalId": "user", "claims": {"sub": "user"}},
            "extraField": "ignored",
        },
        "body": "{\"a\":1}",
        "isBase64Encoded": False,
    }


@pytest.fixture
def http_v2_event() -> dict:
    return {
        "version": "2.0",
        "routeKey": "$default",
        "rawPath": "/my/path",
        "rawQueryString": "parameter1=value1&parameter1=value2",
        "cookies": ["cookie1", "cookie2"],
        "headers": {"header1": "value1"},
        "requestContext": {
            "accountId": "123456789012",
            "apiId": "api-id",
            "domainName": "id.execute-api.us-east-1.amazonaws.com",
            "http": {
                "method": "POST",
                "path": "/my/path",
                "protocol": "HTTP/1.1",
                "sourceIp": "192.0.2.1",
                "userAgent": "agent",
            },
            "authorizer": {"jwt": {"claims": {"claim1": "value1"}, "scopes": ["scope1"]}},
            "stage": "$default",
            "timeEpoch": 1583348638390,
        },
        "body": "Hello from Lambda",
        "isBase64Encoded": False,
    }


class TestRestModel:

    def test_parse_aliases(self, rest_event):
        event = AwsProxyRequest.model_validate(rest_event)
        assert event.http_method == "POST"
        assert event.multi_value_query_string_parameters == {"name": ["me"]}
        assert event.request_context.identity.source_ip == "192.168.100.1"
        assert event.request_context.authorizer["claims"]["sub"] == "user"

    def test_to_wire_uses_camel_case(self, rest_event):
        wire = AwsProxyRequest.model_validate(rest_event).to_wire()
        assert wire["httpMethod"] == "POST"
        assert wire["requestContext"]["requestId"] == "41b45ea3-70b5-11e6-b7bd-69b5aaebc7d9"
        assert "stageVariables" not in wire
        assert "extraField" not in wire["requestContext"]

    def test_populate_by_name(self):
        event = AwsProxyRequest(http_method="GET", path="/")
        assert event.to_wire() == {"httpMethod": "GET", "path": "/", "isBase64Encoded": False}


class TestHttpV2Model:

    def test_parse(self, http_v2_event):
        event = HttpApiV2ProxyRequest.model_validate(http_v2_event)
        assert event.raw_query_string == "parameter1=value1&parameter1=value2"
        assert event.request_context.http.source_ip == "192.0.2.1"
        assert event.request_context.authorizer.jwt.claims == {"claim1": "value1"}
        assert event.request_context.time_epoch == 1583348638390


class TestAlbModel:

    def test_requires_elb_context(self):
        with pytest.raises(ValidationError):
            AlbRequest.model_validate({"httpMethod": "GET", "path": "/"})

    def test_parse(self):
        event = AlbRequest.model_validate({
            "requestContext": {"elb": {"targetGroupArn": "arn:tg"}},
            "httpMethod": "GET",
            "path": "/lambda",
            "headers": {"host": "lambda-alb.example.com"},
            "body": "",
            "isBase64Encoded": False,
        })
        assert event.request_context.elb.target_group_arn == "arn:tg"


class TestResponseModels:

    def test_proxy_response_wire(self):
        wire = AwsProxyResponse(status_code=200, status_description="200 OK", body="x").to_wire()
        assert wire == {
            "statusCode": 200,
            "statusDescription": "200 OK",
            "body": "x",
            "isBase64Encoded": False,
        }

    def test_http_v2_response_wire(self):
        wire = HttpApiV2ProxyResponse(status_code=204, cookies=["a=1"]).to_wire()
        assert wire == {"statusCode": 204, "cookies": ["a=1"], "isBase64Encoded": False}
