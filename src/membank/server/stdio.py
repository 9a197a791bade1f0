"""MCP server transport: JSON-RPC 2.0 over stdio (NDJSON).

One request per line on stdin, one response per line on stdout. Logs go to
stderr so they never interleave with protocol frames.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

from membank import __version__
from membank.server.router import MemoryBankRouter

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────

SERVER_NAME = "membank"
PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602

# ── JSON-RPC 2.0 helpers ─────────────────────────────────────


def jsonrpc_result(req_id, result):
    return {"jsonrpc": "2.0", "id": req_id, "result": result}


def jsonrpc_error(req_id, code, message):
    return {"jsonrpc": "2.0", "id": req_id, "error": {"code": code, "message": message}}


def encode_response(response: dict) -> str:
    """Serialize one response frame as ASCII-only JSON plus newline."""
    return json.dumps(response) + "\n"


# ── Request handler ──────────────────────────────────────────


async def handle_request(router: MemoryBankRouter, req: Any) -> dict | None:
    if not isinstance(req, dict):
        return jsonrpc_error(None, INVALID_REQUEST, "Invalid Request")

    req_id = req.get("id")
    method = req.get("method", "")

    # Notifications (no id) get no response
    if req_id is None:
        if method == "notifications/initialized":
            logger.info("Client initialized")
        return None

    if method == "initialize":
        return jsonrpc_result(req_id, {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
        })

    if method == "ping":
        return jsonrpc_result(req_id, {})

    if method == "tools/list":
        return jsonrpc_result(req_id, {"tools": router.list_tools()})

    if method == "tools/call":
        params = req.get("params") or {}
        if not isinstance(params, dict):
            return jsonrpc_error(req_id, INVALID_PARAMS, "Invalid params")
        tool_name = params.get("name", "")
        args = params.get("arguments")
        try:
            result = router.call_tool(tool_name, args).to_dict()
        except Exception as e:
            logger.exception("Internal error in tool %s", tool_name)
            result = {
                "content": [{"type": "text", "text": json.dumps(
                    {"status": "error", "message": f"Internal error: {e}"}, indent=2
                )}],
                "isError": True,
            }
        return jsonrpc_result(req_id, result)

    return jsonrpc_error(req_id, METHOD_NOT_FOUND, f"Method not found: {method}")


async def handle_line(router: MemoryBankRouter, line: str) -> dict | None:
    """Decode one NDJSON line and handle it. Blank lines yield nothing."""
    line = line.strip()
    if not line:
        return None
    try:
        req = json.loads(line)
    except json.JSONDecodeError as e:
        logger.warning("Parse error: %s", e)
        return jsonrpc_error(None, PARSE_ERROR, "Parse error")

    if isinstance(req, dict):
        logger.debug("<- %s", req.get("method", "?"))
    return await handle_request(router, req)


# ── Stdio transport (NDJSON) ─────────────────────────────────


async def serve(router: MemoryBankRouter) -> None:
    """Read requests from stdin until EOF."""
    logger.info("Memory bank MCP server running on stdio (db=%s)", router.store.db_path)

    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await asyncio.get_running_loop().connect_read_pipe(lambda: protocol, sys.stdin)

    while True:
        raw = await reader.readline()
        if not raw:
            break
        try:
            response = await handle_line(router, raw.decode("utf-8", errors="replace"))
            if response:
                sys.stdout.write(encode_response(response))
                sys.stdout.flush()
        except Exception as e:
            logger.error("Handler error: %s", e)

    logger.info("stdin closed, shutting down")
