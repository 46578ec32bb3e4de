"""
Tool registry (allow-list).

This is a security control:
- Only registered tools can be executed.
- Each tool has a stable name, a typed argument schema and exactly one
  upstream operation.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import BaseModel

from erp_adapter.tools.types import ToolName, ToolNotFoundError
from erp_adapter.tools.validation import strictness_of
from erp_adapter.upstream.operations import UpstreamOperation

Normalizer = Callable[[Any], Any]


@dataclass(frozen=True)
class ToolDescriptor:
    name: ToolName
    description: str
    arguments: type[BaseModel]
    operation: UpstreamOperation
    normalizer: Normalizer | None = None

    def input_schema(self) -> dict[str, Any]:
        schema = self.arguments.model_json_schema(by_alias=True)
        schema.pop("title", None)
        schema["type"] = "object"
        schema.setdefault("properties", {})
        schema.setdefault("required", [])
        # "ignore" still documents a closed set; unknown fields are just dropped.
        schema["additionalProperties"] = strictness_of(self.arguments) == "allow"
        return schema

    def catalog_entry(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(),
        }


class ToolRegistry:
    """
    Central allow-list registry.

    The executor will look up tools here. No registry entry => no execution.
    The published catalog is computed once, on first use after the last
    registration.
    """

    def __init__(self) -> None:
        self._tools: dict[ToolName, ToolDescriptor] = {}
        self._catalog: list[dict[str, Any]] | None = None

    def register(self, tool: ToolDescriptor) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool
        self._catalog = None

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(ToolName(name))

    def require(self, name: str) -> ToolDescriptor:
        tool = self.get(name)
        if tool is None:
            raise ToolNotFoundError(f"Tool not registered: {name}")
        return tool

    def names(self) -> list[ToolName]:
        return sorted(self._tools.keys())

    def catalog(self) -> list[dict[str, Any]]:
        if self._catalog is None:
            self._catalog = [tool.catalog_entry() for tool in self._tools.values()]
        # Callers get their own copy; the cached catalog never changes.
        return copy.deepcopy(self._catalog)
