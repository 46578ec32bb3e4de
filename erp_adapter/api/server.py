"""
HTTP transport for the MCP front door.

Agent Builder style clients POST JSON-RPC envelopes to `/`; other clients use
the explicit `/initialize`, `/tools/list` and `/tools/call` endpoints, which
take the same envelope.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from erp_adapter.config import Settings, get_settings
from erp_adapter.rpc.handlers import INVALID_REQUEST, PARSE_ERROR, RpcHandler, rpc_error
from erp_adapter.tools.audit import ToolAuditLogger
from erp_adapter.tools.executor import ToolExecutor
from erp_adapter.tools.factory import build_tool_registry
from erp_adapter.upstream.client import UpstreamClient
from erp_adapter.upstream.credentials import CredentialResolver

logger = logging.getLogger(__name__)

_CORS_ALLOW_HEADERS = ["Content-Type", "Authorization", "X-Upstream-Token", "X-Upstream-Base-Url"]


def create_app(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    registry = build_tool_registry(settings)
    client = UpstreamClient(settings=settings, http_client=http_client)
    audit = ToolAuditLogger(audit_dir=settings.audit_dir) if settings.audit_dir else None
    executor = ToolExecutor(registry=registry, client=client, audit_logger=audit)
    handler = RpcHandler(settings=settings, registry=registry, executor=executor)
    resolver = CredentialResolver(settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        logger.info("MCP adapter ready; ERP_BASE=%s", settings.erp_base or "<unset>")
        yield
        await client.aclose()

    app = FastAPI(title="ERP MCP Adapter", lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry
    app.state.handler = handler

    @app.middleware("http")
    async def body_limit_and_no_store(request: Request, call_next):
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > settings.max_body_bytes:
            response = JSONResponse({"error": "request body too large"}, status_code=413)
        else:
            response = await call_next(request)
        response.headers["Cache-Control"] = "no-store"
        return response

    # Added last so it wraps the body limit and answers preflights first.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=_CORS_ALLOW_HEADERS,
        max_age=600,
    )

    async def _dispatch(request: Request, forced_method: str | None = None) -> JSONResponse:
        raw = await request.body()
        if len(raw) > settings.max_body_bytes:
            return JSONResponse({"error": "request body too large"}, status_code=413)

        try:
            envelope: Any = json.loads(raw) if raw else {}
        except ValueError:
            return JSONResponse(rpc_error(None, PARSE_ERROR, "Parse error"))

        if forced_method is not None:
            if not isinstance(envelope, dict):
                return JSONResponse(rpc_error(None, INVALID_REQUEST, "Invalid Request"))
            envelope = {**envelope, "method": forced_method}

        def context_factory():
            return resolver.resolve(request.headers)

        logger.debug("JSON-RPC %s", envelope.get("method") if isinstance(envelope, dict) else envelope)
        return JSONResponse(await handler.handle(envelope, context_factory))

    @app.get("/")
    def health() -> dict[str, Any]:
        return {
            "ok": True,
            "service": settings.server_name,
            "mcp": {
                "version": settings.server_version,
                "name": "ERP MCP Adapter",
                "description": settings.server_description,
            },
        }

    @app.get("/tools")
    def list_tools() -> dict[str, Any]:
        return {"tools": registry.catalog()}

    @app.post("/")
    async def jsonrpc(request: Request) -> JSONResponse:
        return await _dispatch(request)

    @app.post("/initialize")
    async def initialize(request: Request) -> JSONResponse:
        return await _dispatch(request, "initialize")

    @app.post("/tools/list")
    async def tools_list(request: Request) -> JSONResponse:
        return await _dispatch(request, "tools/list")

    @app.post("/tools/call")
    async def tools_call(request: Request) -> JSONResponse:
        return await _dispatch(request, "tools/call")

    return app
