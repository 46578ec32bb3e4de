"""
Tool argument schemas.

Rules:
- Arguments are validated server-side before anything is sent to the ERP.
- Python attributes are snake_case; the JSON Schema published in `tools/list`
  and the payload sent upstream use the ERP's camelCase names.
- `extra` is each tool's unknown-field policy: "forbid" rejects, "ignore"
  drops, "allow" forwards unknown fields to the ERP untouched.
"""

from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict, Field

from erp_adapter.tools.validation import ToolArguments


IndentStatus = Literal[
    "DRAFT",
    "SUBMITTED",
    "APPROVED",
    "REJECTED",
    "CANCELLED",
    "CLOSED",
]
IndentPriority = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]


class NoArguments(ToolArguments):
    model_config = ConfigDict(extra="forbid")


class PageArguments(ToolArguments):
    model_config = ConfigDict(extra="forbid")

    page: int | None = Field(default=None, ge=0, description="Zero-based page number")
    size: int | None = Field(default=None, ge=1, le=500, description="Page size")


class SearchProjectNodesArguments(PageArguments):
    query: str = Field(min_length=1, description="Text to search node names/codes for")
    project_id: str | None = Field(default=None, description="Restrict to one project")
    node_types: list[str] | None = Field(
        default=None,
        description="Node types to include, e.g. ['BUILDING', 'FLOOR']",
    )


class IndentItemArguments(ToolArguments):
    model_config = ConfigDict(extra="allow")

    item_master_id: str
    required_quantity: float = Field(gt=0)
    unit: str
    estimated_rate: float | None = Field(default=None, ge=0)
    estimated_amount: float | None = Field(default=None, ge=0)
    required_by_date: str
    is_testing_required: bool = False
    purpose_of_item: str | None = None
    item_notes: str | None = None


class CreateIndentArguments(ToolArguments):
    # The ERP accepts more fields than we model; forward them.
    model_config = ConfigDict(extra="allow")

    indent_number: str
    indent_title: str | None = None
    indent_description: str | None = None
    indent_type: str | None = None
    priority: IndentPriority = "MEDIUM"
    project_node_id: str
    location_id: str
    requested_by_id: str
    requestor_department: str | None = None
    requested_date: str
    required_by_date: str
    purpose_of_indent: str | None = None
    work_description: str | None = None
    justification: str | None = None
    estimated_budget: float | None = Field(default=None, ge=0)
    budget_code: str | None = None
    requires_approval: bool = False
    is_urgent: bool = False
    delivery_instructions: str | None = None
    quality_requirements: str | None = None
    indent_notes: str | None = None
    indent_items: list[IndentItemArguments] = Field(min_length=1)
    device_id: str | None = None
    ip_address: str | None = None


class UpdateIndentStatusArguments(ToolArguments):
    model_config = ConfigDict(extra="forbid")

    indent_id: str = Field(min_length=1)
    status: IndentStatus
    remarks: str | None = Field(default=None, max_length=1000)
