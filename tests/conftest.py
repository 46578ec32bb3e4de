from __future__ import annotations

from typing import Any

import httpx
import pytest

from erp_adapter.config import Settings
from erp_adapter.tools.types import RequestContext, RequestId
from erp_adapter.upstream.client import UpstreamClient

BASE_URL = "http://erp.test"


class SleepRecorder:
    """Stands in for asyncio.sleep so backoff is observable and instant."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class ScriptedTransport:
    """
    Replays a list of responses/exceptions, one per request, and records
    every request it saw. The last entry repeats once the script runs out.
    """

    def __init__(self, script: list[Any]) -> None:
        self.script = list(script)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self.script[min(len(self.requests), len(self.script)) - 1]
        if callable(step):
            step = step(request)
        if isinstance(step, BaseException):
            raise step
        # Fresh copy: a Response object must not be sent twice.
        return httpx.Response(step.status_code, headers=step.headers, content=step.content)


def json_response(status: int, payload: Any, headers: dict[str, str] | None = None) -> httpx.Response:
    return httpx.Response(status, json=payload, headers=headers)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        erp_base=BASE_URL,
        erp_token="static-token",
        upstream_timeout_seconds=15.0,
        max_retries=2,
    )


@pytest.fixture
def ctx() -> RequestContext:
    return RequestContext(
        base_url=BASE_URL,
        authorization="Bearer static-token",
        request_id=RequestId("req_test"),
    )


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_client(settings: Settings, sleeper: SleepRecorder):
    def _make(transport: ScriptedTransport, **overrides: Any) -> UpstreamClient:
        s = settings.model_copy(update=overrides) if overrides else settings
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
        return UpstreamClient(settings=s, http_client=http_client, sleep=sleeper)

    return _make
