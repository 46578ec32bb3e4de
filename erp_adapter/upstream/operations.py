from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal
from urllib.parse import quote

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
BodyMapping = Literal["none", "arguments"]

MUTATING_METHODS: frozenset[str] = frozenset({"POST", "PUT", "PATCH"})

_PATH_PARAM = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass(frozen=True)
class UpstreamOperation:
    """
    How one tool maps onto one ERP endpoint.

    path:         template, e.g. "/api/v1/indents/{indentId}/status"
    query_params: argument names sent as query string
    body:         "arguments" sends every argument not used by path/query
    """

    method: HttpMethod
    path: str
    query_params: tuple[str, ...] = ()
    body: BodyMapping = "none"

    @property
    def path_params(self) -> tuple[str, ...]:
        return tuple(_PATH_PARAM.findall(self.path))

    @property
    def mutating(self) -> bool:
        return self.method in MUTATING_METHODS

    def render_path(self, arguments: dict[str, Any]) -> str:
        def _sub(match: re.Match[str]) -> str:
            name = match.group(1)
            if arguments.get(name) is None:
                raise KeyError(f"Missing path parameter: {name}")
            return quote(str(arguments[name]), safe="")

        return _PATH_PARAM.sub(_sub, self.path)

    def query(self, arguments: dict[str, Any]) -> list[tuple[str, str]]:
        # Lists are repeated (a=1&a=2), never comma-joined.
        pairs: list[tuple[str, str]] = []
        for name in self.query_params:
            value = arguments.get(name)
            if value is None:
                continue
            values = value if isinstance(value, (list, tuple)) else [value]
            for v in values:
                if v is None:
                    continue
                pairs.append((name, _query_value(v)))
        return pairs

    def body_from(self, arguments: dict[str, Any]) -> dict[str, Any] | None:
        if self.body == "none":
            return None
        consumed = set(self.path_params) | set(self.query_params)
        return {k: v for k, v in arguments.items() if k not in consumed}


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
