"""
Shared tool types and exceptions.

Why this exists:
- Tools are a security boundary. Only catalogued tools run, arguments are
  validated before anything leaves the process, and every failure comes back
  as a typed value instead of an exception crossing layers.
- The RPC front door, the executor and the upstream client all speak the
  types defined here.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NewType
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


ToolName = NewType("ToolName", str)
RequestId = NewType("RequestId", str)


def new_request_id() -> RequestId:
    return RequestId(f"req_{uuid4().hex[:12]}")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNKNOWN_TOOL = "unknown_tool"
    TRANSPORT = "transport"
    RATE_LIMITED = "rate_limited"
    UPSTREAM = "upstream"
    BUSINESS = "business"
    NORMALIZATION = "normalization"


@dataclass(frozen=True)
class RequestContext:
    """
    Per-call context. Built for one inbound call and thrown away afterwards.

    `deadline` is a `time.monotonic()` timestamp; None means only the
    per-attempt timeout and retry cap bound the call.
    """

    base_url: str
    authorization: str | None = field(default=None, repr=False)
    request_id: RequestId = field(default_factory=new_request_id)
    deadline: float | None = None

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0


class Violation(BaseModel):
    field: str
    constraint: str
    message: str
    value: Any = None


class ToolErrorInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    kind: ErrorKind
    message: str
    upstream_status: int | None = Field(default=None, alias="upstreamStatus")
    upstream_payload: Any = Field(default=None, alias="upstreamPayload")
    validation_details: list[Violation] | None = Field(
        default=None, alias="validationDetails"
    )


class ToolResult(BaseModel):
    ok: bool
    data: Any = None
    error: ToolErrorInfo | None = None

    @classmethod
    def success(cls, data: Any) -> ToolResult:
        return cls(ok=True, data=data)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        *,
        upstream_status: int | None = None,
        upstream_payload: Any = None,
        validation_details: list[Violation] | None = None,
    ) -> ToolResult:
        return cls(
            ok=False,
            error=ToolErrorInfo(
                kind=kind,
                message=message,
                upstream_status=upstream_status,
                upstream_payload=upstream_payload,
                validation_details=validation_details,
            ),
        )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ToolError(Exception):
    """Base class for tool errors."""


class ToolConfigurationError(ToolError):
    """The adapter cannot reach the ERP as configured (no base URL, etc.)."""


class ToolNotFoundError(ToolError):
    """Tool name not on allow-list or not registered."""
