"""Integration tests for the MCP JSON-RPC endpoint and health routes."""

import json

import pytest
from fastapi.testclient import TestClient

from countly_fake import SERVER_URL, CountlyRecorder
from countly_mcp.infra.config import SERVER_NAME, Settings
from countly_mcp.main import create_app


@pytest.fixture
def backend():
    return CountlyRecorder()


@pytest.fixture
def client(backend):
    """Create test client wired to the fake Countly backend."""
    app = create_app(Settings(server_url=SERVER_URL, app_env="test"), env={}, transport=backend.transport)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def read_only_client(backend):
    settings = Settings(server_url=SERVER_URL, app_env="test", tools_default="R")
    with TestClient(create_app(settings, env={}, transport=backend.transport)) as test_client:
        yield test_client


def rpc(method, params=None, request_id=1):
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


TOKEN = {"X-Countly-Auth-Token": "header-token"}


class TestProtocol:
    def test_initialize(self, client):
        response = client.post("/mcp", json=rpc("initialize", {"protocolVersion": "2025-03-26"}))

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == 1
        assert body["result"]["serverInfo"]["name"] == SERVER_NAME
        capabilities = body["result"]["capabilities"]
        assert {"tools", "prompts", "resources"} <= set(capabilities)

    def test_ping(self, client):
        assert client.post("/mcp", json=rpc("ping", request_id="abc")).json() == {
            "jsonrpc": "2.0",
            "id": "abc",
            "result": {},
        }

    def test_parse_error(self, client):
        response = client.post("/mcp", content=b"{not json", headers={"Content-Type": "application/json"})
        body = response.json()
        assert body["error"]["code"] == -32700
        assert body["id"] is None

    def test_invalid_request(self, client):
        body = client.post("/mcp", json={"jsonrpc": "2.0", "id": 7}).json()
        assert body["error"]["code"] == -32600
        assert body["id"] == 7

    def test_unknown_method(self, client):
        body = client.post("/mcp", json=rpc("resources/list")).json()
        assert body["error"] == {"code": -32601, "message": "Method not found: resources/list"}

    def test_notification_is_acknowledged(self, client):
        response = client.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"})
        assert response.status_code == 202
        assert response.content == b""

    def test_invalid_params(self, client):
        body = client.post("/mcp", json=rpc("tools/call", {"arguments": {}}), headers=TOKEN).json()
        assert body["error"]["code"] == -32602

    def test_invalid_server_url_header(self, client, backend):
        headers = {**TOKEN, "X-Countly-Server-Url": "ftp://nowhere"}
        body = client.post("/mcp", json=rpc("tools/call", {"name": "ping"}), headers=headers).json()

        assert body["error"]["code"] == -32600
        assert "X-Countly-Server-Url" in body["error"]["message"]
        assert backend.requests == []

    def test_request_id_header_is_echoed(self, client):
        response = client.post("/mcp", json=rpc("ping"), headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    def test_oversized_request_rejected(self, client):
        response = client.post(
            "/mcp",
            content=b" " * (1024 * 1024 + 1),
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 413


class TestToolsList:
    def test_without_credential_lists_all_permitted(self, client, backend):
        tools = client.post("/mcp", json=rpc("tools/list")).json()["result"]["tools"]
        names = {tool["name"] for tool in tools}

        assert {"ping", "create_app", "view_crash", "query_database"} <= names
        assert all("inputSchema" in tool for tool in tools)
        assert backend.requests == []

    def test_with_credential_filters_by_plugins(self, backend, client):
        backend.routes["/o/system/plugins"] = ["views"]

        tools = client.post("/mcp", json=rpc("tools/list"), headers=TOKEN).json()["result"]["tools"]
        names = {tool["name"] for tool in tools}

        assert "get_views_table" in names
        assert "view_crash" not in names

    def test_read_only_hides_writes(self, read_only_client):
        tools = read_only_client.post("/mcp", json=rpc("tools/list")).json()["result"]["tools"]
        names = {tool["name"] for tool in tools}

        assert "list_apps" in names
        assert "create_app" not in names
        assert "delete_note" not in names


class TestToolsCall:
    def test_success_uses_header_token(self, client, backend):
        body = client.post("/mcp", json=rpc("tools/call", {"name": "list_apps"}), headers=TOKEN).json()

        result = body["result"]
        assert result["isError"] is False
        assert "- Blog (ID: app-2)" in result["content"][0]["text"]
        assert backend.tokens() == ["header-token"]

    def test_metadata_token(self, client, backend):
        params = {"name": "ping", "arguments": {}, "_meta": {"countlyAuthToken": "meta-token"}}
        client.post("/mcp", json=rpc("tools/call", params), headers=TOKEN)
        assert backend.tokens() == ["meta-token"]

    def test_missing_credential(self, client):
        body = client.post("/mcp", json=rpc("tools/call", {"name": "ping"})).json()
        assert body["error"]["code"] == -32600
        assert "No authentication token provided" in body["error"]["message"]

    def test_unknown_tool(self, client):
        body = client.post("/mcp", json=rpc("tools/call", {"name": "nope"}), headers=TOKEN).json()
        assert body["error"] == {"code": -32601, "message": "Unknown tool: nope"}

    def test_forbidden_tool(self, read_only_client, backend):
        params = {"name": "create_app", "arguments": {"name": "New"}}
        body = read_only_client.post("/mcp", json=rpc("tools/call", params), headers=TOKEN).json()

        assert body["error"]["code"] == -32600
        assert "not available" in body["error"]["message"]
        assert backend.requests == []

    def test_server_url_header_override(self, client, backend):
        headers = {**TOKEN, "X-Countly-Server-Url": "https://eu.countly.example.com/"}
        client.post("/mcp", json=rpc("tools/call", {"name": "ping"}), headers=headers)
        assert backend.requests[0].url.host == "eu.countly.example.com"


class TestPrompts:
    def test_list_needs_no_credential(self, client, backend):
        prompts = client.post("/mcp", json=rpc("prompts/list")).json()["result"]["prompts"]

        assert "analyze_crash_trends" in {prompt["name"] for prompt in prompts}
        assert backend.requests == []

    def test_get(self, client):
        params = {"name": "funnel_optimization", "arguments": {"app_name": "Shop", "funnel_name": "Checkout"}}
        result = client.post("/mcp", json=rpc("prompts/get", params)).json()["result"]

        assert result["description"] == 'Optimize funnel "Checkout" for Shop'
        assert result["messages"][0]["role"] == "user"
        assert '"Checkout" conversion funnel' in result["messages"][0]["content"]["text"]

    def test_unknown_prompt(self, client):
        body = client.post("/mcp", json=rpc("prompts/get", {"name": "nope"})).json()

        assert body["error"]["code"] == -32602
        assert body["error"]["message"].startswith("Unknown prompt: nope")

    def test_get_without_name(self, client):
        body = client.post("/mcp", json=rpc("prompts/get", {})).json()
        assert body["error"]["code"] == -32602


class TestResources:
    def test_list(self, client, backend):
        body = client.post("/mcp", json=rpc("resources/list"), headers=TOKEN).json()

        uris = [resource["uri"] for resource in body["result"]["resources"]]
        assert "countly://app/app-2/overview" in uris
        assert backend.tokens() == ["header-token"]

    def test_list_without_credential(self, client, backend):
        body = client.post("/mcp", json=rpc("resources/list")).json()

        assert body["error"]["code"] == -32600
        assert backend.requests == []

    def test_read(self, client):
        params = {"uri": "countly://app/app-1/config"}
        contents = client.post("/mcp", json=rpc("resources/read", params), headers=TOKEN).json()["result"]["contents"]

        assert contents[0]["uri"] == "countly://app/app-1/config"
        assert contents[0]["mimeType"] == "application/json"
        assert json.loads(contents[0]["text"])["name"] == "Shop"

    def test_read_invalid_uri(self, client, backend):
        body = client.post("/mcp", json=rpc("resources/read", {"uri": "file:///etc/passwd"}), headers=TOKEN).json()

        assert body["error"] == {"code": -32602, "message": "Invalid resource URI: file:///etc/passwd"}
        assert backend.requests == []


class TestHealth:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["service"] == SERVER_NAME

    def test_liveness(self, client):
        assert client.get("/health/live").json() == {"status": "alive"}

    def test_metrics(self, client):
        client.post("/mcp", json=rpc("tools/call", {"name": "ping"}), headers=TOKEN)
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "tool_calls_total" in response.text
