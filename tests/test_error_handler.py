"""Tests for error normalization and protocol mapping."""

import httpx
import pytest

from countly_mcp.infra.error_handler import (
    CountlyMCPError,
    ForbiddenToolError,
    MissingCredentialError,
    ProtocolErrorCode,
    TenantResolutionError,
    UnknownToolError,
    UpstreamError,
    extract_error_details,
    to_protocol_error,
    truncate,
    wrap_api_error,
)


def _status_error(status: int, **kwargs) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://countly.example.com/o/apps/mine")
    response = httpx.Response(status, request=request, **kwargs)
    return httpx.HTTPStatusError("failed", request=request, response=response)


class TestExtractErrorDetails:
    def test_status_error_with_json_body(self):
        details = extract_error_details(_status_error(400, json={"result": "Missing parameter app_id"}))

        assert details.status_code == 400
        assert details.body_preview == "Missing parameter app_id"
        assert details.message == "HTTP 400 error: Missing parameter app_id (GET /o/apps/mine)"

    def test_status_error_with_text_body(self):
        details = extract_error_details(_status_error(502, text="Bad gateway"))
        assert details.body_preview == "Bad gateway"

    def test_long_body_is_truncated(self):
        details = extract_error_details(_status_error(500, text="x" * 500))
        assert details.body_preview == "x" * 200 + "..."

    def test_no_response(self):
        request = httpx.Request("GET", "https://countly.example.com/o/ping")
        details = extract_error_details(httpx.ConnectError("connection refused", request=request))

        assert details.status_code is None
        assert details.message.startswith("No response from server: connection refused")

    def test_other_exception(self):
        assert extract_error_details(ValueError("bad")).message == "bad"


class TestWrapApiError:
    def test_context_prefix(self):
        error = wrap_api_error(_status_error(404, json={"result": "Not found"}), "Failed to list apps")

        assert isinstance(error, UpstreamError)
        assert error.message.startswith("Failed to list apps: HTTP 404 error")
        assert error.status_code == 404
        assert error.response_received

    def test_network_failure_has_no_status(self):
        request = httpx.Request("GET", "https://countly.example.com/o/ping")
        error = wrap_api_error(httpx.ReadTimeout("timed out", request=request))
        assert not error.response_received
        assert error.code == ProtocolErrorCode.INTERNAL_ERROR


class TestToProtocolError:
    @pytest.mark.parametrize(
        "error, code",
        [
            (MissingCredentialError("no token"), ProtocolErrorCode.INVALID_REQUEST),
            (UnknownToolError("x"), ProtocolErrorCode.METHOD_NOT_FOUND),
            (ForbiddenToolError("x", "denied"), ProtocolErrorCode.INVALID_REQUEST),
            (TenantResolutionError("no app"), ProtocolErrorCode.INVALID_PARAMS),
            (UpstreamError("bad request", status_code=400), ProtocolErrorCode.INVALID_REQUEST),
            (UpstreamError("server error", status_code=500), ProtocolErrorCode.INTERNAL_ERROR),
            (CountlyMCPError("oops"), ProtocolErrorCode.INTERNAL_ERROR),
        ],
    )
    def test_codes(self, error, code):
        assert to_protocol_error(error) == {"code": int(code), "message": error.message}

    def test_unexpected_exception_names_tool(self):
        result = to_protocol_error(KeyError("k"), tool_name="ping")
        assert result["code"] == -32603
        assert result["message"].startswith("Error executing tool ping:")


def test_truncate():
    assert truncate("short") == "short"
    assert truncate("abcdef", limit=3) == "abc..."
