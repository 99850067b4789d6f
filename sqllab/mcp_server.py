"""
MCP (Model Context Protocol) Server for the SQL lab
Implements JSON-RPC 2.0 over stdio so agents and CLI clients can run lab
queries and read session schemas.
"""
import json
import sys
import asyncio
from typing import Any, Dict, Optional, Callable
from dataclasses import dataclass, asdict
from enum import Enum

from sqllab.core.errors import SQLLabError
from sqllab.core.logging import get_logger
from sqllab.db.session import DatabaseRegistry, get_registry
from sqllab.services.schema import get_schema
from sqllab.services.sql_engine import MAX_LIMIT, explain_query
from sqllab.tools.lab_query import jsonable_result
from sqllab.ui.lab_view import ViewRegistry

logger = get_logger("sqllab.mcp")

PROTOCOL_VERSION = "2024-11-05"


class JSONRPCErrorCode(Enum):
    """JSON-RPC 2.0 error codes"""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    SERVER_ERROR = -32000


@dataclass
class JSONRPCRequest:
    """JSON-RPC 2.0 request"""
    jsonrpc: str = "2.0"
    id: Optional[Any] = None
    method: str = ""
    params: Optional[Dict[str, Any]] = None


@dataclass
class JSONRPCResponse:
    """JSON-RPC 2.0 response"""
    jsonrpc: str = "2.0"
    id: Optional[Any] = None
    result: Optional[Any] = None
    error: Optional[Dict[str, Any]] = None


class InvalidParams(ValueError):
    pass


class MethodNotFound(LookupError):
    pass


TOOL_DEFINITIONS = {
    "list_sessions": {
        "name": "list_sessions",
        "description": "List the sessions that have a lab database",
        "inputSchema": {"type": "object", "properties": {}, "required": []},
    },
    "get_schema": {
        "name": "get_schema",
        "description": "Describe the user tables of a session database (columns, types, NOT NULL, primary key)",
        "inputSchema": {
            "type": "object",
            "properties": {"session_id": {"type": "string"}},
            "required": ["session_id"],
        },
    },
    "run_sql": {
        "name": "run_sql",
        "description": f"Run a read-only SELECT against a session database. At most {MAX_LIMIT} rows are returned.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "session_id": {"type": "string"},
                "sql": {"type": "string", "description": "A single SELECT statement"},
                "format": {"type": "string", "enum": ["json", "table", "csv"]},
            },
            "required": ["session_id", "sql"],
        },
    },
    "explain_query": {
        "name": "explain_query",
        "description": "Show SQLite's query plan for a SELECT without running it",
        "inputSchema": {
            "type": "object",
            "properties": {"session_id": {"type": "string"}, "sql": {"type": "string"}},
            "required": ["session_id", "sql"],
        },
    },
}


QUERY_HELP = f"""# SQL Lab

- Only SELECT statements are accepted.
- Results are capped at {MAX_LIMIT} rows: a LIMIT is appended when missing and
  larger limits are lowered. Capped results are flagged as `limited`.
- Use `get_schema` to see the tables of a session before querying.
- `run_sql` with `format: "table"` returns a text grid, `format: "csv"` the CSV export.
"""


def _require(arguments: Dict[str, Any], *names: str):
    missing = [n for n in names if not isinstance(arguments.get(n), str) or not arguments.get(n)]
    if missing:
        raise InvalidParams(f"Missing required argument(s): {', '.join(missing)}")


class MCPServer:
    """MCP Server implementing JSON-RPC 2.0 protocol"""

    def __init__(self, registry: Optional[DatabaseRegistry] = None):
        self.registry = registry or get_registry()
        self.views = ViewRegistry()
        self.tools: Dict[str, Callable] = {
            "list_sessions": self._handle_list_sessions,
            "get_schema": self._handle_get_schema,
            "run_sql": self._handle_run_sql,
            "explain_query": self._handle_explain_query,
        }
        self.resources: Dict[str, Callable] = {
            "sessions": self._handle_list_sessions,
        }
        self.prompts: Dict[str, str] = {
            "query_help": QUERY_HELP,
        }
        logger.info(f"MCP Server initialized with {len(self.tools)} tools")

    async def handle_request(self, request_data: str) -> Optional[str]:
        """Handle a JSON-RPC request"""
        try:
            request = self._parse_request(request_data)
        except json.JSONDecodeError as e:
            logger.error(f"JSON parse error: {e}")
            return self._error(None, JSONRPCErrorCode.PARSE_ERROR, "Parse error", str(e))

        if request is None:
            return self._error(None, JSONRPCErrorCode.INVALID_REQUEST, "Invalid request")

        # Notifications (no id) never get a response
        if request.id is None:
            if request.method == "notifications/initialized":
                logger.info("Client initialized")
            return None

        try:
            result = await self._handle_method(request)
        except MethodNotFound as e:
            return self._error(request.id, JSONRPCErrorCode.METHOD_NOT_FOUND, str(e))
        except InvalidParams as e:
            return self._error(request.id, JSONRPCErrorCode.INVALID_PARAMS, str(e))
        except SQLLabError as e:
            return self._error(
                request.id, JSONRPCErrorCode.SERVER_ERROR, e.message,
                {"type": e.__class__.__name__, "status": e.status_code},
            )
        except Exception as e:
            logger.exception(f"Unexpected error handling {request.method}: {e}")
            return self._error(request.id, JSONRPCErrorCode.INTERNAL_ERROR, "Internal error")

        return self._serialize(JSONRPCResponse(id=request.id, result=result))

    def _parse_request(self, data: str) -> Optional[JSONRPCRequest]:
        obj = json.loads(data)
        if not isinstance(obj, dict) or not isinstance(obj.get("method"), str):
            return None
        return JSONRPCRequest(
            jsonrpc=obj.get("jsonrpc", "2.0"),
            id=obj.get("id"),
            method=obj["method"],
            params=obj.get("params"),
        )

    async def _handle_method(self, request: JSONRPCRequest) -> Any:
        method = request.method
        params = request.params or {}

        if method == "initialize":
            return {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}, "resources": {}, "prompts": {}},
                "serverInfo": {"name": "sqllab-mcp-server", "version": "1.0.0"},
            }
        if method == "tools/list":
            return {"tools": [TOOL_DEFINITIONS[name] for name in self.tools]}
        if method == "tools/call":
            name = params.get("name")
            if name not in self.tools:
                raise MethodNotFound(f"Tool not found: {name}")
            return await self.tools[name](params.get("arguments") or {})
        if method == "resources/list":
            return {"resources": [
                {"uri": f"sqllab://{name}", "name": name, "mimeType": "application/json"}
                for name in self.resources
            ]}
        if method == "resources/read":
            uri = params.get("uri", "")
            name = uri.split("://", 1)[-1]
            if name not in self.resources:
                raise MethodNotFound(f"Resource not found: {uri}")
            data = await self.resources[name]({})
            return {"contents": [{"uri": uri, "mimeType": "application/json", "text": json.dumps(data)}]}
        if method == "prompts/list":
            return {"prompts": [{"name": name} for name in self.prompts]}
        if method == "prompts/get":
            name = params.get("name")
            if name not in self.prompts:
                raise MethodNotFound(f"Prompt not found: {name}")
            return {"messages": [
                {"role": "user", "content": {"type": "text", "text": self.prompts[name]}}
            ]}
        if method in self.tools:
            return await self.tools[method](params)
        raise MethodNotFound(f"Method not found: {method}")

    async def _handle_list_sessions(self, args: Dict[str, Any]) -> Dict[str, Any]:
        return {"sessions": self.registry.sessions()}

    async def _handle_get_schema(self, args: Dict[str, Any]) -> Dict[str, Any]:
        _require(args, "session_id")
        tables = await get_schema(self.registry, args["session_id"])
        return {"tables": [t.to_dict() for t in tables]}

    async def _handle_run_sql(self, args: Dict[str, Any]) -> Dict[str, Any]:
        _require(args, "session_id", "sql")
        fmt = args.get("format", "json")
        if fmt not in ("json", "table", "csv"):
            raise InvalidParams(f"Unsupported format: {fmt}")

        view = self.views.get(args["session_id"], self.registry)
        result = await view.run(args["sql"])
        if fmt == "table":
            return {"text": view.table.render_text(), "limited": result.limited}
        if fmt == "csv":
            return {"csv": view.table.to_csv(), "limited": result.limited}
        return jsonable_result(result)

    async def _handle_explain_query(self, args: Dict[str, Any]) -> Dict[str, Any]:
        _require(args, "session_id", "sql")
        plan = await explain_query(self.registry, args["session_id"], args["sql"])
        return {"plan": plan}

    def _error(self, request_id, code: JSONRPCErrorCode, message: str, data: Any = None) -> str:
        error = {"code": code.value, "message": message}
        if data is not None:
            error["data"] = data
        return self._serialize(JSONRPCResponse(id=request_id, error=error))

    def _serialize(self, response: JSONRPCResponse) -> str:
        payload = {k: v for k, v in asdict(response).items() if v is not None or k == "id"}
        return json.dumps(payload, default=str) + "\n"


async def run_stdio_server(registry: Optional[DatabaseRegistry] = None):
    """Run MCP server over stdio (for CLI clients)"""
    server = MCPServer(registry)
    logger.info("MCP Server starting (stdio mode)")

    loop = asyncio.get_running_loop()
    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue

            response = await server.handle_request(line)
            if response:
                sys.stdout.write(response)
                sys.stdout.flush()
    except KeyboardInterrupt:
        logger.info("MCP Server shutting down")
    finally:
        await server.registry.close_all()
        logger.info("MCP Server stopped")


if __name__ == "__main__":
    asyncio.run(run_stdio_server())
