from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from erp_adapter.tools.audit import ToolAuditEvent, ToolAuditLogger, now_iso
from erp_adapter.tools.registry import ToolRegistry
from erp_adapter.tools.types import ErrorKind, RequestContext, ToolResult
from erp_adapter.tools.validation import Invalid, validate_arguments
from erp_adapter.upstream.client import UpstreamClient
from erp_adapter.upstream.outcomes import Success

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolCall:
    name: str
    args: Any


class ToolExecutor:
    """
    Runs one tool call: validate → call the ERP → normalize.

    Every path ends in a ToolResult. Unknown tools and invalid arguments never
    reach the network; retries belong to the UpstreamClient, the executor
    never re-issues a call.
    """

    def __init__(
        self,
        *,
        registry: ToolRegistry,
        client: UpstreamClient,
        audit_logger: ToolAuditLogger | None = None,
    ) -> None:
        self._registry = registry
        self._client = client
        self._audit = audit_logger

    async def execute(self, ctx: RequestContext, call: ToolCall) -> ToolResult:
        start = time.perf_counter()
        attempts = 0
        upstream_status: int | None = None

        tool = self._registry.get(call.name)
        if tool is None:
            result = ToolResult.failure(ErrorKind.UNKNOWN_TOOL, f"Unknown tool: {call.name}")
            self._log_event(ctx, call, result, attempts, upstream_status, start)
            return result

        validated = validate_arguments(tool.arguments, call.args)
        if isinstance(validated, Invalid):
            result = ToolResult.failure(
                ErrorKind.VALIDATION,
                validated.message,
                validation_details=validated.violations,
            )
            self._log_event(ctx, call, result, attempts, upstream_status, start)
            return result

        outcome = await self._client.send(tool.operation, ctx, validated.arguments)
        attempts = outcome.attempts
        upstream_status = outcome.status

        if isinstance(outcome, Success):
            result = self._normalize(tool.normalizer, outcome.payload, call.name)
        else:
            result = ToolResult.failure(
                outcome.kind,
                outcome.reason,
                upstream_status=outcome.status,
                upstream_payload=outcome.payload,
            )

        self._log_event(ctx, call, result, attempts, upstream_status, start)
        return result

    def _normalize(self, normalizer: Any, payload: Any, tool_name: str) -> ToolResult:
        if normalizer is None:
            return ToolResult.success(payload)
        try:
            return ToolResult.success(normalizer(payload))
        except Exception as e:
            logger.exception("Normalizer for %s failed", tool_name)
            return ToolResult.failure(
                ErrorKind.NORMALIZATION,
                f"Could not normalize upstream response: {e}",
                upstream_payload=payload,
            )

    def _log_event(
        self,
        ctx: RequestContext,
        call: ToolCall,
        result: ToolResult,
        attempts: int,
        upstream_status: int | None,
        start: float,
    ) -> None:
        duration_ms = _ms_since(start)
        error = result.error

        if error is None:
            logger.info(
                "%s tool=%s ok attempts=%d duration_ms=%d",
                ctx.request_id, call.name, attempts, duration_ms,
            )
        else:
            logger.warning(
                "%s tool=%s failed kind=%s status=%s attempts=%d duration_ms=%d: %s",
                ctx.request_id, call.name, error.kind, upstream_status, attempts, duration_ms,
                error.message,
            )

        if not self._audit:
            return

        evt = ToolAuditEvent(
            timestamp=now_iso(),
            request_id=str(ctx.request_id),
            tool_name=str(call.name),
            args=call.args,
            status="success" if result.ok else "error",
            error_kind=str(error.kind) if error else None,
            error_message=error.message if error else None,
            upstream_status=upstream_status,
            attempts=attempts,
            duration_ms=duration_ms,
        )
        self._audit.log(evt)


def _ms_since(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
