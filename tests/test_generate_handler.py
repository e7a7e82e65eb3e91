"""Forwarding handler behaviour against a simulated OpenAI API."""

import asyncio
import errno
import json
import socket

import httpx
import pytest

from generate_proxy.features.generate.handler import classify_exception
from generate_proxy.shared.config import Settings, ServerConfig

from conftest import TEST_API_KEY, completion_body, make_settings

VALID_BODY = {"prompt": "Tell me a joke"}


def assert_cors(headers: dict) -> None:
    assert headers["Access-Control-Allow-Origin"] == "*"


@pytest.mark.parametrize("body", [None, "", "not json", json.dumps({"prompt": "x"})])
def test_preflight_is_always_204_with_empty_body(run_handler, upstream, body):
    result = run_handler("OPTIONS", body)

    assert result.status_code == 204
    assert result.body is None
    assert result.body_text() == ""
    assert result.headers == {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
        "Access-Control-Allow-Methods": "POST, OPTIONS",
    }
    assert upstream.requests == []


@pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE", "HEAD"])
def test_other_methods_are_rejected_with_405(run_handler, upstream, method):
    result = run_handler(method, VALID_BODY)

    assert result.status_code == 405
    assert result.headers["Allow"] == "POST"
    assert_cors(result.headers)
    assert result.body == {"error": "Method not allowed. Use POST.", "method": method}
    assert upstream.requests == []


@pytest.mark.parametrize("body", ["{not json", "[1, 2", "   ", b"\xff\xfe\x00garbage"])
def test_undecodable_body_is_400(run_handler, upstream, body):
    result = run_handler("POST", body)

    assert result.status_code == 400
    assert result.body["error"] == "Invalid JSON in request body"
    assert result.body["details"]
    assert upstream.requests == []


def test_non_object_json_is_400(run_handler):
    result = run_handler("POST", "[1, 2, 3]")

    assert result.status_code == 400
    assert result.body["details"] == "Expected a JSON object, got list"


@pytest.mark.parametrize("body", [None, "", {"model": "gpt-4o"}])
def test_missing_prompt_and_messages_is_400(run_handler, upstream, body):
    result = run_handler("POST", body)

    assert result.status_code == 400
    assert result.body["error"] == "Missing prompt or messages in request body"
    assert upstream.requests == []


def test_missing_api_key_is_500_without_upstream_call(run_handler, upstream):
    result = run_handler("POST", VALID_BODY, settings_=make_settings(api_key=None))

    assert result.status_code == 500
    assert result.body["error"].startswith("Server configuration error")
    assert "timestamp" in result.body
    assert_cors(result.headers)
    assert upstream.requests == []


def test_success_preserves_upstream_payload_and_adds_meta(run_handler, upstream):
    result = run_handler("POST", {**VALID_BODY, "model": "gpt-4o"})

    assert result.status_code == 200
    assert result.headers["Content-Type"] == "application/json"
    assert_cors(result.headers)
    meta = result.body.pop("meta")
    assert result.body == completion_body()
    assert meta["model"] == "gpt-4o"
    assert meta["function_version"] == "1.0"
    assert meta["timestamp"].endswith("Z")


def test_upstream_request_carries_credential_and_payload(run_handler, upstream):
    run_handler("POST", {"prompt": "Hi", "temperature": 0})

    request = upstream.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://api.openai.com/v1/chat/completions"
    assert request.headers["Authorization"] == f"Bearer {TEST_API_KEY}"
    assert request.headers["Content-Type"] == "application/json"
    assert upstream.last_payload["messages"] == [{"role": "user", "content": "Hi"}]
    assert upstream.last_payload["temperature"] == 0


def test_identical_requests_give_identical_responses_except_timestamp(run_handler):
    first = run_handler("POST", VALID_BODY)
    second = run_handler("POST", VALID_BODY)

    first.body["meta"].pop("timestamp")
    second.body["meta"].pop("timestamp")
    assert (first.status_code, first.body_text()) == (second.status_code, second.body_text())


def test_non_json_upstream_body_is_502_with_bounded_preview(run_handler, upstream):
    html = "<html>" + "x" * 1000 + "</html>"
    upstream.responder = lambda request: httpx.Response(200, text=html)

    result = run_handler("POST", VALID_BODY)

    assert result.status_code == 502
    assert result.body["error"] == "Invalid response format from OpenAI API"
    assert result.body["details"] == "Response was not valid JSON"
    assert result.body["preview"] == html[:200]


def test_upstream_error_status_is_propagated_with_extracted_fields(run_handler, upstream):
    error = {"error": {"message": "Incorrect API key provided", "type": "invalid_request_error", "code": "invalid_api_key"}}
    upstream.responder = lambda request: httpx.Response(401, json=error)

    result = run_handler("POST", VALID_BODY)

    assert result.status_code == 401
    assert result.body == {
        "error": "Incorrect API key provided",
        "type": "invalid_request_error",
        "code": "invalid_api_key",
        "details": error,
    }


@pytest.mark.parametrize("payload", [{}, {"error": "quota"}, {"error": {"code": None}}, ["unexpected"]])
def test_upstream_error_fields_fall_back(run_handler, upstream, payload):
    upstream.responder = lambda request: httpx.Response(429, json=payload)

    result = run_handler("POST", VALID_BODY)

    assert result.status_code == 429
    assert result.body["error"] == "OpenAI API request failed"
    assert result.body["type"] == "api_error"
    assert result.body["code"] == "unknown"
    assert result.body["details"] == payload


@pytest.mark.parametrize("payload", [{"id": "x"}, {"choices": []}, {"choices": "text"}])
def test_success_without_choices_is_502(run_handler, upstream, payload):
    upstream.responder = lambda request: httpx.Response(200, json=payload)

    result = run_handler("POST", VALID_BODY)

    assert result.status_code == 502
    assert result.body["error"] == "Invalid response structure from OpenAI API"
    assert result.body["structure"] == list(payload.keys())


def test_slow_upstream_is_408(run_handler, upstream):
    async def never_in_time(request):
        await asyncio.sleep(2)
        return httpx.Response(200, json=completion_body())

    upstream.responder = never_in_time

    result = run_handler("POST", VALID_BODY, settings_=make_settings(timeout=0.05))

    assert result.status_code == 408
    assert result.body == {"error": "Request timeout: OpenAI API took too long to respond"}


def test_httpx_timeout_is_408(run_handler, upstream):
    def read_timeout(request):
        raise httpx.ReadTimeout("timed out", request=request)

    upstream.responder = read_timeout

    assert run_handler("POST", VALID_BODY).status_code == 408


def test_unreachable_upstream_is_502(run_handler, upstream):
    def refuse(request):
        raise httpx.ConnectError("Connection refused", request=request)

    upstream.responder = refuse

    result = run_handler("POST", VALID_BODY)

    assert result.status_code == 502
    assert result.body == {"error": "Network error: Unable to reach OpenAI API", "details": "Connection refused"}


@pytest.mark.parametrize(
    "error, status, message",
    [
        (socket.gaierror(-2, "Name or service not known"), 502, "DNS error: Unable to resolve OpenAI API hostname"),
        (ConnectionResetError(104, "Connection reset by peer"), 502, "Connection reset: Request to OpenAI API was interrupted"),
        (RuntimeError("kaboom"), 500, "kaboom"),
    ],
)
def test_unexpected_errors_are_refined(run_handler, upstream, error, status, message):
    def explode(request):
        raise error

    upstream.responder = explode

    result = run_handler("POST", VALID_BODY)

    assert result.status_code == status
    assert result.body["error"] == message
    assert "timestamp" in result.body
    assert "stack" not in result.body
    assert_cors(result.headers)


def test_debug_mode_includes_stack(run_handler, upstream):
    def explode(request):
        raise RuntimeError("kaboom")

    upstream.responder = explode
    debug_settings = Settings(server=ServerConfig(debug=True), openai=make_settings().openai)

    result = run_handler("POST", VALID_BODY, settings_=debug_settings)

    assert "RuntimeError: kaboom" in result.body["stack"]


def test_classify_exception_follows_causes():
    try:
        try:
            raise OSError(errno.ETIMEDOUT, "Connection timed out")
        except OSError as inner:
            raise ValueError("wrapped") from inner
    except ValueError as outer:
        assert classify_exception(outer) == (408, "Timeout: OpenAI API took too long to respond")

    assert classify_exception(Exception()) == (500, "Unknown server error")


def test_oversized_numbers_do_not_become_server_errors(run_handler, upstream):
    body = '{"prompt": "hi", "temperature": 1' + "0" * 400 + ', "max_tokens": 1' + "0" * 400 + "}"

    result = run_handler("POST", body)

    assert result.status_code == 200
    assert upstream.last_payload["temperature"] == 0.7
    assert upstream.last_payload["max_tokens"] == 2000
