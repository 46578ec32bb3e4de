"""
Resilient ERP client.

One `send()` is one logical upstream call:
- build URL + headers from the operation, the per-call context and the
  validated arguments
- issue the request with a bounded timeout
- classify the response into an `UpstreamOutcome`
- retry transient failures (timeouts, network errors, 429/502/503/504) with
  exponential backoff, one attempt at a time, until `max_retries` is used up
  or the next wait would pass the call deadline

Nothing here raises for upstream trouble: callers always get `Success` or
`FatalFailure` back.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt

from erp_adapter.config import Settings
from erp_adapter.tools.types import ErrorKind, RequestContext
from erp_adapter.upstream.operations import UpstreamOperation
from erp_adapter.upstream.outcomes import (
    FatalFailure,
    RetryableFailure,
    Success,
    UpstreamOutcome,
    with_attempts,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES: frozenset[int] = frozenset({429, 502, 503, 504})

# Spring-style status names count as success alongside the usual sentinels.
SUCCESS_SENTINELS: frozenset[str] = frozenset(
    {"success", "successful", "ok", "created", "accepted", "no_content"}
)

# Keys of the ERP response wrapper. A payload with any other key is an
# unwrapped entity, and its `status` is a domain field such as an indent state.
ENVELOPE_KEYS: frozenset[str] = frozenset(
    {"status", "success", "message", "error", "errors", "data", "code", "timestamp", "path"}
)

# Failures where the request never reached the ERP.
_PRE_SEND_ERRORS: tuple[type[Exception], ...] = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.PoolTimeout,
)

Sleep = Callable[[float], Awaitable[None]]


def parse_body(response: httpx.Response) -> Any:
    text = response.text
    try:
        return json.loads(text)
    except ValueError:
        return {"raw": text}


def parse_retry_after(response: httpx.Response, cap_ms: int) -> float | None:
    """Retry-After in milliseconds, returned as seconds. Non-numeric values are ignored."""
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        ms = float(value.strip())
    except ValueError:
        return None
    if ms < 0:
        return None
    return min(ms, float(cap_ms)) / 1000.0


def business_failure(payload: Any) -> str | None:
    """
    Return a reason when a 2xx payload still says the operation failed.

    The ERP wraps results as {"status": ..., "message": ..., "data": ...};
    some endpoints use {"success": false} instead. `status` is only read from
    payloads made of wrapper keys alone.
    """
    if not isinstance(payload, dict):
        return None

    message = payload.get("message") or payload.get("error")

    if payload.get("success") is False:
        return str(message or "upstream reported success=false")

    status = payload.get("status")
    if status is None or not ENVELOPE_KEYS.issuperset(payload):
        return None

    if isinstance(status, bool):
        ok = status
    elif isinstance(status, int):
        ok = 200 <= status < 300
    elif isinstance(status, str):
        s = status.strip().lower()
        ok = s in SUCCESS_SENTINELS or (s.isdigit() and 200 <= int(s) < 300)
    else:
        ok = True

    if ok:
        return None
    return str(message or f"upstream reported status {status!r}")


class UpstreamClient:
    def __init__(
        self,
        *,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(headers={"Accept": "application/json"})
        self._sleep = sleep

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> UpstreamClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def send(
        self,
        operation: UpstreamOperation,
        ctx: RequestContext,
        arguments: dict[str, Any],
    ) -> UpstreamOutcome:
        try:
            url = ctx.base_url + operation.render_path(arguments)
        except KeyError as e:
            return FatalFailure(reason=str(e.args[0]), kind=ErrorKind.VALIDATION)

        params = operation.query(arguments)
        body = operation.body_from(arguments)
        headers = self._headers(ctx, has_body=body is not None)

        attempts = 0

        async def attempt() -> UpstreamOutcome:
            nonlocal attempts
            attempts += 1
            outcome = await self._attempt(operation, ctx, url, params, body, headers)
            logger.debug(
                "%s %s %s attempt=%d -> %s",
                ctx.request_id,
                operation.method,
                url,
                attempts,
                type(outcome).__name__,
            )
            return outcome

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.max_retries + 1) | _deadline_passed(ctx),
            wait=self._backoff(),
            retry=retry_if_result(lambda o: isinstance(o, RetryableFailure)),
            retry_error_callback=_exhausted,
            before_sleep=_log_retry(ctx, operation),
            sleep=self._sleep,
        )
        outcome = await retrying(attempt)
        if isinstance(outcome, RetryableFailure):
            outcome = outcome.exhausted(attempts)
        return with_attempts(outcome, attempts)

    def _headers(self, ctx: RequestContext, *, has_body: bool) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if ctx.authorization:
            headers["Authorization"] = ctx.authorization
        if has_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _attempt_timeout(self, ctx: RequestContext) -> float:
        timeout = float(self._settings.upstream_timeout_seconds)
        remaining = ctx.remaining()
        if remaining is not None:
            timeout = min(timeout, remaining)
        return timeout

    async def _attempt(
        self,
        operation: UpstreamOperation,
        ctx: RequestContext,
        url: str,
        params: list[tuple[str, str]],
        body: dict[str, Any] | None,
        headers: dict[str, str],
    ) -> UpstreamOutcome:
        timeout = self._attempt_timeout(ctx)
        if timeout <= 0:
            return FatalFailure(reason="call deadline exceeded", kind=ErrorKind.TRANSPORT)

        try:
            response = await self._http.request(
                operation.method,
                url,
                params=params or None,
                json=body,
                headers=headers,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            reason = f"timed out after {int(timeout * 1000)}ms"
            return self._transport_failure(operation, e, reason)
        except (httpx.UnsupportedProtocol, httpx.LocalProtocolError, httpx.InvalidURL) as e:
            return FatalFailure(reason=f"invalid upstream request: {e}", kind=ErrorKind.TRANSPORT)
        except httpx.TransportError as e:
            reason = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
            return self._transport_failure(operation, e, reason)

        return self._classify(response)

    def _transport_failure(
        self,
        operation: UpstreamOperation,
        exc: Exception,
        reason: str,
    ) -> UpstreamOutcome:
        pre_send = isinstance(exc, _PRE_SEND_ERRORS)
        if operation.mutating and not pre_send and not self._settings.retry_mutating_on_timeout:
            return FatalFailure(
                reason=f"{reason}; not retried because {operation.method} may already have been applied",
                kind=ErrorKind.TRANSPORT,
            )
        return RetryableFailure(reason=reason, kind=ErrorKind.TRANSPORT)

    def _classify(self, response: httpx.Response) -> UpstreamOutcome:
        payload = parse_body(response)
        status = response.status_code

        if status in RETRYABLE_STATUSES:
            return RetryableFailure(
                reason=f"upstream returned HTTP {status}",
                kind=ErrorKind.RATE_LIMITED,
                retry_after=parse_retry_after(response, self._settings.retry_after_cap_ms),
                status=status,
                payload=payload,
            )

        if not response.is_success:
            return FatalFailure(
                reason=f"upstream returned HTTP {status}",
                kind=ErrorKind.UPSTREAM,
                status=status,
                payload=payload,
            )

        reason = business_failure(payload)
        if reason:
            return FatalFailure(
                reason=reason,
                kind=ErrorKind.BUSINESS,
                status=status,
                payload=payload,
            )

        return Success(payload=payload, status=status)

    def _backoff(self) -> Callable[[RetryCallState], float]:
        transport_base = self._settings.transport_backoff_base_ms / 1000.0
        status_base = self._settings.status_backoff_base_ms / 1000.0

        def wait(retry_state: RetryCallState) -> float:
            outcome = retry_state.outcome.result()
            attempt = retry_state.attempt_number - 1

            if outcome.retry_after is not None:
                delay = outcome.retry_after
            elif outcome.kind == ErrorKind.RATE_LIMITED:
                delay = status_base * (2**attempt)
            else:
                delay = transport_base * (2**attempt)
            return delay

        return wait


def _deadline_passed(ctx: RequestContext) -> Callable[[RetryCallState], bool]:
    """Stop when the next backoff would run past the call deadline."""

    def stop(retry_state: RetryCallState) -> bool:
        remaining = ctx.remaining()
        if remaining is None:
            return False
        # tenacity computes the wait before asking stop.
        return retry_state.upcoming_sleep >= remaining

    return stop


def _exhausted(retry_state: RetryCallState) -> UpstreamOutcome:
    last = retry_state.outcome.result()
    if isinstance(last, RetryableFailure):
        return last.exhausted(retry_state.attempt_number)
    return last


def _log_retry(
    ctx: RequestContext,
    operation: UpstreamOperation,
) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome.result()
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "%s %s %s attempt %d failed (%s); retrying in %dms",
            ctx.request_id,
            operation.method,
            operation.path,
            retry_state.attempt_number,
            outcome.reason,
            int(delay * 1000),
        )

    return before_sleep
