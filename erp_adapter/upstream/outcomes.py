"""
Result of talking to the ERP.

`UpstreamOutcome` is a closed union. A single attempt yields any of the three
variants; `UpstreamClient.send` only ever returns `Success` or `FatalFailure`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Union

from erp_adapter.tools.types import ErrorKind


@dataclass(frozen=True)
class Success:
    payload: Any
    status: int
    attempts: int = 1


@dataclass(frozen=True)
class RetryableFailure:
    reason: str
    kind: ErrorKind
    retry_after: float | None = None  # seconds
    status: int | None = None
    payload: Any = None
    attempts: int = 1

    def exhausted(self, attempts: int) -> FatalFailure:
        return FatalFailure(
            reason=f"{self.reason} (gave up after {attempts} attempt{'' if attempts == 1 else 's'})",
            kind=self.kind,
            status=self.status,
            payload=self.payload,
            attempts=attempts,
        )


@dataclass(frozen=True)
class FatalFailure:
    reason: str
    kind: ErrorKind
    status: int | None = None
    payload: Any = None
    attempts: int = 1


UpstreamOutcome = Union[Success, RetryableFailure, FatalFailure]


def with_attempts(outcome: UpstreamOutcome, attempts: int) -> UpstreamOutcome:
    return replace(outcome, attempts=attempts)
