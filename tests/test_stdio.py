"""Tests for the JSON-RPC stdio transport (no real stdin/stdout)."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from membank import __version__
from membank.bank.store import MemoryBankStore
from membank.server.router import MemoryBankRouter
from membank.server.stdio import (
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    PROTOCOL_VERSION,
    encode_response,
    handle_line,
    handle_request,
)


@pytest.fixture
def router(tmp_path: Path) -> MemoryBankRouter:
    store = MemoryBankStore(tmp_path / "memory-bank.db")
    yield MemoryBankRouter(store)
    store.close()


def _call(req_id: int, name: str, arguments: dict | None = None) -> dict:
    params = {"name": name}
    if arguments is not None:
        params["arguments"] = arguments
    return {"jsonrpc": "2.0", "id": req_id, "method": "tools/call", "params": params}


class TestHandleRequest:
    @pytest.mark.asyncio
    async def test_initialize(self, router: MemoryBankRouter):
        resp = await handle_request(router, {"jsonrpc": "2.0", "id": 1, "method": "initialize"})
        assert resp["id"] == 1
        assert resp["result"]["protocolVersion"] == PROTOCOL_VERSION
        assert resp["result"]["serverInfo"] == {"name": "membank", "version": __version__}

    @pytest.mark.asyncio
    async def test_notification_has_no_response(self, router: MemoryBankRouter):
        resp = await handle_request(
            router, {"jsonrpc": "2.0", "method": "notifications/initialized"}
        )
        assert resp is None

    @pytest.mark.asyncio
    async def test_tools_list(self, router: MemoryBankRouter):
        resp = await handle_request(router, {"jsonrpc": "2.0", "id": 2, "method": "tools/list"})
        assert len(resp["result"]["tools"]) == 4

    @pytest.mark.asyncio
    async def test_ping(self, router: MemoryBankRouter):
        resp = await handle_request(router, {"jsonrpc": "2.0", "id": 3, "method": "ping"})
        assert resp["result"] == {}

    @pytest.mark.asyncio
    async def test_unknown_method(self, router: MemoryBankRouter):
        resp = await handle_request(router, {"jsonrpc": "2.0", "id": 4, "method": "resources/list"})
        assert resp["error"]["code"] == METHOD_NOT_FOUND

    @pytest.mark.asyncio
    async def test_append_then_read(self, router: MemoryBankRouter):
        await handle_request(
            router,
            _call(5, "append_memory_bank_entry", {
                "file_name": "diary", "entry": "Today was a good day.", "section_header": "2025-07-02",
            }),
        )
        resp = await handle_request(router, _call(6, "read_memory_bank_file", {"file_name": "diary"}))
        result = resp["result"]
        assert "isError" not in result
        assert json.loads(result["content"][0]["text"]) == {
            "content": "2025-07-02\n- Today was a good day.\n\n"
        }

    @pytest.mark.asyncio
    async def test_tool_error_is_result_not_rpc_error(self, router: MemoryBankRouter):
        resp = await handle_request(router, _call(7, "read_memory_bank_file"))
        assert "error" not in resp
        assert resp["result"]["isError"] is True

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_error_result(self):
        router = MagicMock(spec=MemoryBankRouter)
        router.call_tool.side_effect = RuntimeError("boom")
        resp = await handle_request(router, _call(8, "check_memory_bank_status"))
        assert resp["result"]["isError"] is True
        assert "boom" in resp["result"]["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_non_object_params(self, router: MemoryBankRouter):
        resp = await handle_request(
            router, {"jsonrpc": "2.0", "id": 10, "method": "tools/call", "params": [1]}
        )
        assert resp["id"] == 10
        assert resp["error"]["code"] == INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_non_string_tool_name(self, router: MemoryBankRouter):
        resp = await handle_request(
            router, {"jsonrpc": "2.0", "id": 11, "method": "tools/call", "params": {"name": ["x"]}}
        )
        assert resp["result"]["isError"] is True


class TestHandleLine:
    @pytest.mark.asyncio
    async def test_blank_line(self, router: MemoryBankRouter):
        assert await handle_line(router, "   \n") is None

    @pytest.mark.asyncio
    async def test_parse_error(self, router: MemoryBankRouter):
        resp = await handle_line(router, "{not json")
        assert resp["id"] is None
        assert resp["error"]["code"] == PARSE_ERROR

    @pytest.mark.asyncio
    async def test_non_object_request(self, router: MemoryBankRouter):
        resp = await handle_line(router, "[1, 2]")
        assert resp["error"]["code"] == -32600

    @pytest.mark.asyncio
    async def test_status_line(self, router: MemoryBankRouter):
        line = json.dumps(_call(9, "check_memory_bank_status", {})) + "\n"
        resp = await handle_line(router, line)
        assert json.loads(resp["result"]["content"][0]["text"]) == {"exists": False, "files": []}


class TestEncodeResponse:
    @pytest.mark.asyncio
    async def test_lone_surrogate_tool_name_is_encodable(self, router: MemoryBankRouter):
        line = '{"jsonrpc": "2.0", "id": 12, "method": "tools/call", "params": {"name": "\\ud800"}}'
        resp = await handle_line(router, line)
        frame = encode_response(resp)
        frame.encode("utf-8")
        assert frame.endswith("\n")
        decoded = json.loads(frame)
        assert decoded["id"] == 12
        assert decoded["result"]["isError"] is True
        message = json.loads(decoded["result"]["content"][0]["text"])["message"]
        assert message == "Unknown tool: \ud800"

    @pytest.mark.asyncio
    async def test_lone_surrogate_method_is_encodable(self, router: MemoryBankRouter):
        resp = await handle_line(router, '{"jsonrpc": "2.0", "id": 13, "method": "\\udfff"}')
        encode_response(resp).encode("utf-8")
        assert resp["error"]["code"] == METHOD_NOT_FOUND

    def test_non_ascii_round_trips(self):
        frame = encode_response({"jsonrpc": "2.0", "id": 1, "result": {"text": "日志 ✓"}})
        assert frame.isascii()
        assert json.loads(frame)["result"]["text"] == "日志 ✓"
