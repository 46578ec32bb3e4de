"""
Tool factory / wiring.

The ERP tool catalog lives here. Adding a tool means declaring its argument
schema (schemas.py), its endpoint and, if the raw payload is awkward, a
normalizer. No per-tool code paths exist elsewhere.
"""

from __future__ import annotations

from erp_adapter.config import Settings
from erp_adapter.tools.normalize import breadcrumb_transform, normalize_paged, normalize_scalar
from erp_adapter.tools.registry import ToolDescriptor, ToolRegistry
from erp_adapter.tools.schemas import (
    CreateIndentArguments,
    NoArguments,
    PageArguments,
    SearchProjectNodesArguments,
    UpdateIndentStatusArguments,
)
from erp_adapter.tools.types import ToolName
from erp_adapter.upstream.operations import UpstreamOperation

_PAGE_QUERY = ("page", "size")


def _paged_list(name: str, path: str, what: str) -> ToolDescriptor:
    return ToolDescriptor(
        name=ToolName(name),
        description=f"GET {path} → {what} as items + pagination (from data.content)",
        arguments=PageArguments,
        operation=UpstreamOperation(method="GET", path=path, query_params=_PAGE_QUERY),
        normalizer=normalize_paged,
    )


def build_tool_registry(settings: Settings) -> ToolRegistry:
    registry = ToolRegistry()

    registry.register(
        ToolDescriptor(
            name=ToolName("generateIndentNumber"),
            description="GET /api/v1/indents/generate-number → returns the next indent number",
            arguments=NoArguments,
            operation=UpstreamOperation(method="GET", path="/api/v1/indents/generate-number"),
            normalizer=normalize_scalar("indentNumber"),
        )
    )
    registry.register(_paged_list("fetchProjects", "/api/v1/projects", "projects"))
    registry.register(_paged_list("listLocations", "/api/v1/locations", "locations"))
    registry.register(_paged_list("listItems", "/api/v1/items", "item masters"))
    registry.register(_paged_list("listUnits", "/api/v1/units", "units of measure"))

    node_path = breadcrumb_transform("nodePath", settings.breadcrumb_separator)
    registry.register(
        ToolDescriptor(
            name=ToolName("searchProjectNodes"),
            description=(
                "GET /api/v1/project-nodes/search → project nodes matching a query, "
                "each with its hierarchy as nodePath + a readable breadcrumb"
            ),
            arguments=SearchProjectNodesArguments,
            operation=UpstreamOperation(
                method="GET",
                path="/api/v1/project-nodes/search",
                query_params=("query", "projectId", "nodeTypes", *_PAGE_QUERY),
            ),
            normalizer=lambda payload: normalize_paged(payload, node_path),
        )
    )

    registry.register(
        ToolDescriptor(
            name=ToolName("createIndent"),
            description="POST /api/v1/indents → creates an indent with the ERP JSON body",
            arguments=CreateIndentArguments,
            operation=UpstreamOperation(method="POST", path="/api/v1/indents", body="arguments"),
            normalizer=normalize_scalar("result"),
        )
    )
    registry.register(
        ToolDescriptor(
            name=ToolName("updateIndentStatus"),
            description=(
                "PUT /api/v1/indents/{indentId}/status → moves an indent to "
                "DRAFT, SUBMITTED, APPROVED, REJECTED, CANCELLED or CLOSED"
            ),
            arguments=UpdateIndentStatusArguments,
            operation=UpstreamOperation(
                method="PUT",
                path="/api/v1/indents/{indentId}/status",
                body="arguments",
            ),
            normalizer=normalize_scalar("result"),
        )
    )

    return registry
