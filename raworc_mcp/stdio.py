"""Newline-delimited JSON-RPC 2.0 transport over stdin/stdout.

One line is read, fully handled (including its upstream HTTP call) and
answered before the next line is read. Logging never touches stdout.
"""
import json
import logging
import sys
import time
from typing import Any, Dict, Optional, TextIO

from . import __version__
from .errors import McpError, RaworcError
from .tools import Dispatcher

MCP_PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "raworc-mcp"

# JSON-RPC error codes
INVALID_REQUEST = -32600
INTERNAL_ERROR = -32603
TOOL_ERROR = -32000

req_logger = logging.getLogger("raworc_mcp.request")
resp_logger = logging.getLogger("raworc_mcp.response")
stdio_logger = logging.getLogger("raworc_mcp.stdio")


def _jsonrpc_response(id: Any, result: Any = None, error: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    if error is not None:
        return {"jsonrpc": "2.0", "id": id, "error": error}
    return {"jsonrpc": "2.0", "id": id, "result": result}


def _initialize_result() -> Dict[str, Any]:
    return {
        "protocolVersion": MCP_PROTOCOL_VERSION,
        "capabilities": {"tools": {}},
        "serverInfo": {"name": SERVER_NAME, "version": __version__},
    }


def _println(stdout: TextIO, obj: Dict[str, Any]) -> None:
    stdout.write(json.dumps(obj) + "\n")
    stdout.flush()


def _call_tool(dispatcher: Dispatcher, id_: Any, params: Dict[str, Any]) -> Dict[str, Any]:
    name = params.get("name")
    start = time.time()
    status = "ok"
    try:
        if not isinstance(name, str) or not name:
            raise McpError("Missing tool name")
        result = dispatcher.dispatch(name, params.get("arguments"))
        return _jsonrpc_response(id_, result.model_dump())
    except RaworcError as e:
        status = type(e).__name__
        return _jsonrpc_response(id_, error={"code": TOOL_ERROR, "message": str(e)})
    except Exception as e:
        status = "internal"
        stdio_logger.exception("tool_crashed", extra={"extra": {"id": id_, "tool": name}})
        return _jsonrpc_response(id_, error={"code": INTERNAL_ERROR, "message": f"Internal error: {e}"})
    finally:
        resp_logger.info(
            "mcp_result",
            extra={"extra": {"id": id_, "method": "tools/call", "tool": name, "status": status, "duration_ms": int((time.time() - start) * 1000)}},
        )


def handle_message(dispatcher: Dispatcher, msg: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return the response for one decoded message, or None when nothing is sent back."""
    method = msg.get("method")
    is_request = "id" in msg
    id_ = msg.get("id")
    req_logger.debug("mcp_rpc", extra={"extra": {"id": id_, "method": method}})

    if not is_request:
        # Notifications (e.g. notifications/initialized) never get a reply
        stdio_logger.debug("notification", extra={"extra": {"method": method}})
        return None
    if msg.get("jsonrpc") != "2.0":
        return _jsonrpc_response(id_, error={"code": INVALID_REQUEST, "message": "Invalid Request"})
    if method == "initialize":
        return _jsonrpc_response(id_, _initialize_result())
    if method == "tools/list":
        return _jsonrpc_response(id_, {"tools": dispatcher.list_tools()})
    if method == "tools/call":
        params = msg.get("params")
        if not isinstance(params, dict):
            return _jsonrpc_response(id_, error={"code": TOOL_ERROR, "message": str(McpError("Missing params in tool call"))})
        return _call_tool(dispatcher, id_, params)
    if method == "ping":
        return _jsonrpc_response(id_, {})
    stdio_logger.warning("unknown_method", extra={"extra": {"id": id_, "method": method}})
    return None


def serve(dispatcher: Dispatcher, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
    """Serve requests until end-of-stream on ``stdin``."""
    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout
    for line in stdin:
        line = line.strip()
        if not line:
            continue
        try:
            msg = json.loads(line)
        except ValueError as e:
            stdio_logger.error("bad_json", extra={"extra": {"err": str(e)}})
            continue
        if not isinstance(msg, dict):
            stdio_logger.error("bad_message", extra={"extra": {"type": type(msg).__name__}})
            continue
        response = handle_message(dispatcher, msg)
        if response is not None:
            _println(stdout, response)
    stdio_logger.info("eof")
