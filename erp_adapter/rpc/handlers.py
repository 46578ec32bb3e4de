"""
MCP JSON-RPC front door.

Transport-agnostic: takes a decoded envelope, returns the response envelope.
This is the last line of defense; nothing raised below escapes as a raw
exception.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Callable

from erp_adapter.config import Settings
from erp_adapter.tools.executor import ToolCall, ToolExecutor
from erp_adapter.tools.registry import ToolRegistry
from erp_adapter.tools.types import RequestContext, ToolError, ToolResult

logger = logging.getLogger(__name__)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Builds the per-call RequestContext (credential/base-URL resolution).
ContextFactory = Callable[[], RequestContext]


def rpc_result(id_: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": id_, "result": result}


def rpc_error(id_: Any, code: int, message: str, data: Any = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": id_, "error": error}


class RpcHandler:
    def __init__(
        self,
        *,
        settings: Settings,
        registry: ToolRegistry,
        executor: ToolExecutor,
    ) -> None:
        self._settings = settings
        self._registry = registry
        self._executor = executor

    async def handle(self, envelope: Any, context_factory: ContextFactory) -> dict[str, Any]:
        if not isinstance(envelope, Mapping):
            return rpc_error(None, INVALID_REQUEST, "Invalid Request: envelope must be a JSON object")

        id_ = envelope.get("id")
        method = envelope.get("method")
        params = envelope.get("params")
        if not isinstance(params, Mapping):
            params = {}

        try:
            if method == "initialize":
                return rpc_result(id_, self.initialize(params))

            if method == "tools/list":
                return rpc_result(id_, {"tools": self._registry.catalog()})

            if method == "tools/call":
                return await self._tools_call(id_, params, context_factory)

            if isinstance(method, str) and method.startswith("notifications/"):
                logger.debug("Notification received: %s", method)
                return rpc_result(id_, {})

            logger.info("Unknown method: %s", method)
            return rpc_error(id_, METHOD_NOT_FOUND, f"Method not found: {method}")

        except ToolError as e:
            logger.error("Tool call rejected: %s", e)
            return rpc_error(id_, INTERNAL_ERROR, "Tool execution failed", str(e))
        except Exception as e:
            logger.exception("Error handling %s request", method)
            return rpc_error(id_, INTERNAL_ERROR, "Internal error", str(e) or type(e).__name__)

    def initialize(self, params: Mapping[str, Any]) -> dict[str, Any]:
        client_info = params.get("clientInfo")
        if not isinstance(client_info, Mapping):
            client_info = {}
        protocol_version = params.get("protocolVersion") or self._settings.default_protocol_version

        logger.info(
            "Initialize request from: %s, protocol: %s",
            client_info.get("name"),
            protocol_version,
        )

        return {
            "protocolVersion": protocol_version,
            "capabilities": {
                "tools": {},
                "resources": {},
                "prompts": {},
            },
            "serverInfo": {
                "name": self._settings.server_name,
                "version": self._settings.server_version,
            },
        }

    async def _tools_call(
        self,
        id_: Any,
        params: Mapping[str, Any],
        context_factory: ContextFactory,
    ) -> dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            return rpc_error(id_, INVALID_PARAMS, "Invalid params: 'name' is required")

        args = params.get("arguments")
        if args is None:
            args = {}

        ctx = context_factory()
        result = await self._executor.execute(ctx, ToolCall(name=name, args=args))
        return tool_result_envelope(id_, result)


def tool_result_envelope(id_: Any, result: ToolResult) -> dict[str, Any]:
    if result.ok:
        data = result.to_wire().get("data")
        text = data if isinstance(data, str) else json.dumps(data, indent=2, ensure_ascii=False)
        content: dict[str, Any] = {
            "content": [{"type": "text", "text": text}],
            "isError": False,
        }
        if isinstance(data, dict):
            content["structuredContent"] = data
        return rpc_result(id_, content)

    error = result.to_wire()["error"]
    return rpc_error(id_, INTERNAL_ERROR, error["message"], error)
