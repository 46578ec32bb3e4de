"""
Generic argument validation.

Every tool declares its arguments as a pydantic model. This module is the
single interpreter for those models: it coerces (numeric strings, defaults),
applies the tool's unknown-field policy and reports every violation at once.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel
from pydantic_core import to_jsonable_python

from erp_adapter.tools.types import Violation

Strictness = Literal["ignore", "forbid", "allow"]


class ToolArguments(BaseModel):
    """
    Base for tool argument schemas.

    Fields are snake_case in Python and camelCase on the wire (the ERP's
    naming). Subclasses pick their unknown-field policy via `extra`.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


@dataclass(frozen=True)
class Valid:
    arguments: dict[str, Any]


@dataclass(frozen=True)
class Invalid:
    violations: list[Violation]

    @property
    def message(self) -> str:
        parts = [f"{v.field}: {v.message}" for v in self.violations]
        return "Invalid arguments: " + "; ".join(parts)


ValidationOutcome = Union[Valid, Invalid]


def strictness_of(schema: type[BaseModel]) -> Strictness:
    return schema.model_config.get("extra") or "ignore"


def validate_arguments(schema: type[BaseModel], raw: Any) -> ValidationOutcome:
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        return Invalid(
            [
                Violation(
                    field="$",
                    constraint="object_type",
                    message="Arguments must be a JSON object",
                    value=raw,
                )
            ]
        )

    try:
        parsed = schema.model_validate(dict(raw))
    except ValidationError as e:
        return Invalid([_violation(err) for err in e.errors()])

    return Valid(parsed.model_dump(mode="json", by_alias=True, exclude_none=True))


def _violation(err: Mapping[str, Any]) -> Violation:
    loc = err.get("loc") or ()
    field = ".".join(str(part) for part in loc) or "$"
    constraint = str(err.get("type", "invalid"))
    # For missing fields pydantic reports the whole parent object as input.
    value = None if constraint == "missing" else err.get("input")
    return Violation(
        field=field,
        constraint=constraint,
        message=str(err.get("msg", "")),
        value=to_jsonable_python(value, fallback=repr),
    )
