import json

import pytest

from sqllab.mcp_server import MCPServer


def rpc(method, params=None, id=1):
    payload = {"jsonrpc": "2.0", "id": id, "method": method}
    if params is not None:
        payload["params"] = params
    return json.dumps(payload)


async def call(server, method, params=None):
    response = await server.handle_request(rpc(method, params))
    return json.loads(response)


@pytest.mark.asyncio
async def test_initialize_and_list_tools(registry):
    server = MCPServer(registry)
    init = await call(server, "initialize", {})
    assert init["result"]["serverInfo"]["name"] == "sqllab-mcp-server"

    tools = await call(server, "tools/list")
    names = {t["name"] for t in tools["result"]["tools"]}
    assert names == {"list_sessions", "get_schema", "run_sql", "explain_query"}


@pytest.mark.asyncio
async def test_run_sql_tool(registry):
    server = MCPServer(registry)
    body = await call(server, "tools/call", {
        "name": "run_sql",
        "arguments": {"session_id": "demo", "sql": "SELECT id FROM users ORDER BY id LIMIT 3"},
    })
    result = body["result"]
    assert result["columns"] == ["id"]
    assert result["rows"] == [[1], [2], [3]]
    assert result["limited"] is False


@pytest.mark.asyncio
async def test_run_sql_table_and_csv_formats(registry):
    server = MCPServer(registry)
    table = await call(server, "tools/call", {
        "name": "run_sql",
        "arguments": {"session_id": "demo", "sql": "SELECT name FROM products ORDER BY id", "format": "table"},
    })
    assert table["result"]["text"].splitlines()[0].startswith("name")

    exported = await call(server, "tools/call", {
        "name": "run_sql",
        "arguments": {"session_id": "demo", "sql": "SELECT name FROM products ORDER BY id", "format": "csv"},
    })
    assert exported["result"]["csv"] == 'name\n"Widget"\n"Gadget"\n"Doodad"'


@pytest.mark.asyncio
async def test_lab_errors_become_server_errors(registry):
    server = MCPServer(registry)
    body = await call(server, "tools/call", {
        "name": "run_sql",
        "arguments": {"session_id": "demo", "sql": "UPDATE users SET name = 'x'"},
    })
    assert body["error"]["code"] == -32000
    assert body["error"]["data"] == {"type": "ValidationError", "status": 400}

    body = await call(server, "tools/call", {
        "name": "get_schema",
        "arguments": {"session_id": "ghost"},
    })
    assert body["error"]["data"]["type"] == "NotFoundError"


@pytest.mark.asyncio
async def test_protocol_errors(registry):
    server = MCPServer(registry)

    body = await call(server, "tools/call", {"name": "run_sql", "arguments": {"session_id": "demo"}})
    assert body["error"]["code"] == -32602

    body = await call(server, "tools/call", {"name": "drop_everything", "arguments": {}})
    assert body["error"]["code"] == -32601

    body = await call(server, "no/such/method")
    assert body["error"]["code"] == -32601

    body = json.loads(await server.handle_request("{not json"))
    assert body["error"]["code"] == -32700


@pytest.mark.asyncio
async def test_notifications_get_no_response(registry):
    server = MCPServer(registry)
    note = json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"})
    assert await server.handle_request(note) is None


@pytest.mark.asyncio
async def test_schema_resources_and_prompts(registry):
    server = MCPServer(registry)

    schema = await call(server, "tools/call", {"name": "get_schema", "arguments": {"session_id": "demo"}})
    assert [t["name"] for t in schema["result"]["tables"]][-1] == "users"

    sessions = await call(server, "resources/read", {"uri": "sqllab://sessions"})
    assert json.loads(sessions["result"]["contents"][0]["text"]) == {"sessions": ["demo"]}

    prompt = await call(server, "prompts/get", {"name": "query_help"})
    assert "SELECT" in prompt["result"]["messages"][0]["content"]["text"]

    plan = await call(server, "explain_query", {"session_id": "demo", "sql": "SELECT * FROM users"})
    assert plan["result"]["plan"]
