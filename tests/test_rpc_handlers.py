"""Tests for erp_adapter.rpc.handlers: JSON-RPC envelope handling."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from erp_adapter.rpc.handlers import RpcHandler
from erp_adapter.tools.executor import ToolExecutor
from erp_adapter.tools.factory import build_tool_registry
from erp_adapter.tools.types import ErrorKind, ToolConfigurationError
from erp_adapter.upstream.client import UpstreamClient
from erp_adapter.upstream.outcomes import FatalFailure, Success


@pytest.fixture
def mock_client():
    return AsyncMock(spec=UpstreamClient)


@pytest.fixture
def handler(settings, mock_client):
    registry = build_tool_registry(settings)
    executor = ToolExecutor(registry=registry, client=mock_client)
    return RpcHandler(settings=settings, registry=registry, executor=executor)


@pytest.fixture
def context_factory(ctx):
    return lambda: ctx


class TestInitialize:
    @pytest.mark.asyncio
    async def test_echoes_protocol_version(self, handler, context_factory):
        envelope = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "initialize",
            "params": {"protocolVersion": "2025-03-26", "clientInfo": {"name": "agent-builder"}},
        }

        response = await handler.handle(envelope, context_factory)

        assert response["jsonrpc"] == "2.0"
        assert response["id"] == 1
        result = response["result"]
        assert result["protocolVersion"] == "2025-03-26"
        assert result["capabilities"] == {"tools": {}, "resources": {}, "prompts": {}}
        assert result["serverInfo"] == {"name": "erp-mcp-adapter", "version": "1.0.0"}

    @pytest.mark.asyncio
    async def test_default_protocol_version(self, handler, context_factory):
        response = await handler.handle({"id": "a", "method": "initialize"}, context_factory)

        assert response["result"]["protocolVersion"] == "2025-06-18"


class TestToolsList:
    @pytest.mark.asyncio
    async def test_catalog_is_stable_across_calls(self, handler, context_factory):
        envelope = {"id": 2, "method": "tools/list"}

        first = await handler.handle(envelope, context_factory)
        first["result"]["tools"][0]["name"] = "mutated by caller"
        second = await handler.handle(envelope, context_factory)
        third = await handler.handle(envelope, context_factory)

        assert json.dumps(second, sort_keys=False) == json.dumps(third, sort_keys=False)
        assert second["result"]["tools"][0]["name"] == "generateIndentNumber"

    @pytest.mark.asyncio
    async def test_catalog_entry_shape(self, handler, context_factory):
        response = await handler.handle({"id": 3, "method": "tools/list"}, context_factory)
        tools = {t["name"]: t for t in response["result"]["tools"]}

        assert set(tools) == {
            "generateIndentNumber",
            "fetchProjects",
            "listLocations",
            "listItems",
            "listUnits",
            "searchProjectNodes",
            "createIndent",
            "updateIndentStatus",
        }
        create = tools["createIndent"]["inputSchema"]
        assert create["type"] == "object"
        assert create["additionalProperties"] is True
        assert "indentNumber" in create["required"]
        assert "indentItems" in create["properties"]

        no_args = tools["generateIndentNumber"]["inputSchema"]
        assert no_args["properties"] == {}
        assert no_args["required"] == []
        assert no_args["additionalProperties"] is False

        status = tools["updateIndentStatus"]["inputSchema"]["properties"]["status"]
        assert "APPROVED" in status["enum"]


class TestToolsCall:
    @pytest.mark.asyncio
    async def test_success_is_wrapped_as_text_content(self, handler, mock_client, context_factory):
        mock_client.send.return_value = Success(payload={"status": "OK", "data": "IND-9"}, status=200)
        envelope = {"id": 4, "method": "tools/call", "params": {"name": "generateIndentNumber"}}

        response = await handler.handle(envelope, context_factory)

        result = response["result"]
        assert result["isError"] is False
        assert result["content"][0]["type"] == "text"
        assert json.loads(result["content"][0]["text"]) == {"indentNumber": "IND-9"}
        assert result["structuredContent"] == {"indentNumber": "IND-9"}

    @pytest.mark.asyncio
    async def test_validation_failure_is_envelope_error(self, handler, mock_client, context_factory):
        envelope = {
            "id": 5,
            "method": "tools/call",
            "params": {"name": "updateIndentStatus", "arguments": {"indentId": "1", "status": "DONE"}},
        }

        response = await handler.handle(envelope, context_factory)

        error = response["error"]
        assert error["code"] == -32603
        assert error["data"]["kind"] == "validation"
        assert error["data"]["validationDetails"][0]["field"] == "status"
        mock_client.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_upstream_failure_carries_status_and_payload(self, handler, mock_client, context_factory):
        mock_client.send.return_value = FatalFailure(
            reason="upstream returned HTTP 500",
            kind=ErrorKind.UPSTREAM,
            status=500,
            payload={"message": "NullPointerException"},
        )
        envelope = {"id": 6, "method": "tools/call", "params": {"name": "listItems", "arguments": {}}}

        response = await handler.handle(envelope, context_factory)

        data = response["error"]["data"]
        assert response["error"]["message"] == "upstream returned HTTP 500"
        assert data["upstreamStatus"] == 500
        assert data["upstreamPayload"] == {"message": "NullPointerException"}

    @pytest.mark.asyncio
    async def test_unknown_tool(self, handler, context_factory):
        envelope = {"id": 7, "method": "tools/call", "params": {"name": "deleteEverything"}}

        response = await handler.handle(envelope, context_factory)

        assert response["error"]["code"] == -32603
        assert response["error"]["data"]["kind"] == "unknown_tool"

    @pytest.mark.asyncio
    async def test_missing_name_is_invalid_params(self, handler, context_factory):
        response = await handler.handle({"id": 8, "method": "tools/call", "params": {}}, context_factory)

        assert response["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_raw_exception_is_contained(self, handler, mock_client, context_factory):
        mock_client.send.side_effect = RuntimeError("socket exploded")
        envelope = {"id": 9, "method": "tools/call", "params": {"name": "listUnits"}}

        response = await handler.handle(envelope, context_factory)

        assert response["error"] == {
            "code": -32603,
            "message": "Internal error",
            "data": "socket exploded",
        }

    @pytest.mark.asyncio
    async def test_configuration_error_is_contained(self, handler):
        def no_base_url():
            raise ToolConfigurationError("ERP base URL is not configured (set ERP_BASE).")

        envelope = {"id": 10, "method": "tools/call", "params": {"name": "listUnits"}}

        response = await handler.handle(envelope, no_base_url)

        assert response["error"]["code"] == -32603
        assert response["error"]["message"] == "Tool execution failed"
        assert "ERP_BASE" in response["error"]["data"]


class TestEnvelope:
    @pytest.mark.asyncio
    async def test_unknown_method(self, handler, context_factory):
        response = await handler.handle({"id": 11, "method": "resources/list"}, context_factory)

        assert response == {
            "jsonrpc": "2.0",
            "id": 11,
            "error": {"code": -32601, "message": "Method not found: resources/list"},
        }

    @pytest.mark.asyncio
    async def test_notifications_are_acknowledged(self, handler, context_factory):
        response = await handler.handle({"method": "notifications/initialized"}, context_factory)

        assert "error" not in response

    @pytest.mark.asyncio
    async def test_non_object_envelope(self, handler, context_factory):
        response = await handler.handle([1, 2, 3], context_factory)

        assert response["error"]["code"] == -32600
        assert response["id"] is None
