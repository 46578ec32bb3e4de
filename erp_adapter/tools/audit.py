"""
Tool audit logging.

Production goal:
- Every tool call is auditable: which tool, when, with what arguments, how it
  ended and how many upstream attempts it took.
- Logs are append-only (JSONL), easy to ship to ELK/Splunk/Datadog later.

Security note:
- Credentials never reach this file: RequestContext keeps the resolved
  Authorization header out of the event, and argument keys that look like
  secrets are masked.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

_SECRET_KEYS = {"authorization", "token", "password", "secret", "apikey", "api_key"}


def _mask(value: Any) -> str:
    s = str(value)
    if len(s) <= 4:
        return "***"
    return s[:2] + "***" + s[-2:]


def _redact(obj: Any) -> Any:
    """
    Very small redaction helper.
    - For dicts: mask keys that look like credentials.
    - For lists: redact each element.
    """
    if isinstance(obj, dict):
        out: dict[str, Any] = {}
        for k, v in obj.items():
            if str(k).lower() in _SECRET_KEYS and v is not None:
                out[k] = _mask(v)
            else:
                out[k] = _redact(v)
        return out

    if isinstance(obj, list):
        return [_redact(x) for x in obj]

    return obj


@dataclass(frozen=True)
class ToolAuditEvent:
    timestamp: str
    request_id: str
    tool_name: str
    args: Any
    status: str  # "success" | "error"
    error_kind: str | None
    error_message: str | None
    upstream_status: int | None
    attempts: int
    duration_ms: int


class ToolAuditLogger:
    def __init__(self, *, audit_dir: Path) -> None:
        self._path = audit_dir / "tool_calls.jsonl"
        audit_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def log(self, event: ToolAuditEvent) -> None:
        payload = asdict(event)
        payload["args"] = _redact(payload["args"])

        line = json.dumps(payload, ensure_ascii=False, default=str)
        with self._path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")


def now_iso() -> str:
    return datetime.now(UTC).isoformat()
