"""
Response normalization.

The ERP returns Spring-style envelopes:

    {"status": "OK", "data": {"content": [...], "pageable": {...},
                              "totalElements": 12, "totalPages": 2}}

and some list items carry hierarchical paths as JSON-encoded strings
('[{"name": "Tower A"}, {"name": "Floor 3"}]').

Everything here is total: bad input degrades to defaults, never raises.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, NamedTuple

logger = logging.getLogger(__name__)

ItemTransform = Callable[[dict[str, Any]], dict[str, Any]]


class Breadcrumb(NamedTuple):
    path: list[dict[str, Any]]
    text: str


@dataclass(frozen=True)
class PageInfo:
    page_number: int
    page_size: int
    total_elements: int
    total_pages: int

    @classmethod
    def from_data(cls, data: dict[str, Any], item_count: int) -> PageInfo:
        pageable = data.get("pageable")
        if not isinstance(pageable, dict):
            pageable = {}
        return cls(
            page_number=_as_int(pageable.get("pageNumber"), 0),
            page_size=_as_int(pageable.get("pageSize"), item_count),
            total_elements=_as_int(data.get("totalElements"), item_count),
            total_pages=_as_int(data.get("totalPages"), 1),
        )

    def as_dict(self) -> dict[str, int]:
        return {
            "pageNumber": self.page_number,
            "pageSize": self.page_size,
            "totalElements": self.total_elements,
            "totalPages": self.total_pages,
        }

    def to_envelope(self, items: list[Any]) -> dict[str, Any]:
        """Rebuild the ERP's page shape (inverse of `from_data`)."""
        return {
            "data": {
                "content": list(items),
                "pageable": {"pageNumber": self.page_number, "pageSize": self.page_size},
                "totalElements": self.total_elements,
                "totalPages": self.total_pages,
            }
        }


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool) or value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def unwrap_data(payload: Any) -> Any:
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def map_items(items: list[Any], transform: ItemTransform) -> list[dict[str, Any]]:
    """Apply `transform` per item; a failing item becomes a marked partial item."""
    out: list[dict[str, Any]] = []
    for item in items:
        try:
            if not isinstance(item, dict):
                raise TypeError(f"expected an object, got {type(item).__name__}")
            out.append(transform(item))
        except Exception as e:
            logger.warning("Item normalization failed: %s", e)
            partial: dict[str, Any] = {}
            if isinstance(item, dict):
                for key in ("id", "name", "code"):
                    if key in item:
                        partial[key] = item[key]
            partial["_error"] = f"normalization failed: {e}"
            out.append(partial)
    return out


def normalize_paged(
    payload: Any,
    transform: ItemTransform | None = None,
) -> dict[str, Any]:
    data = unwrap_data(payload)

    if isinstance(data, list):
        items: list[Any] = data
        data = {}
    elif isinstance(data, dict):
        content = data.get("content")
        items = content if isinstance(content, list) else []
    else:
        items = []
        data = {}

    page = PageInfo.from_data(data, len(items))
    if transform is not None:
        items = map_items(items, transform)

    return {"items": items, "pagination": page.as_dict()}


def parse_breadcrumb(value: Any, separator: str = " > ") -> Breadcrumb:
    """
    Parse a hierarchical path ('[{"name": "A"}, {"name": "B"}]') into the
    list of nodes and a joined "A > B" string.
    """
    try:
        nodes = json.loads(value) if isinstance(value, str) else value
        if not isinstance(nodes, list):
            return Breadcrumb([], "")
        path = [n for n in nodes if isinstance(n, dict)]
        names = [str(n["name"]) for n in path if n.get("name") not in (None, "")]
        return Breadcrumb(path, separator.join(names))
    except (TypeError, ValueError):
        return Breadcrumb([], "")


def breadcrumb_transform(
    field: str,
    separator: str = " > ",
) -> ItemTransform:
    """Item transform that replaces `field` with parsed path + breadcrumb text."""

    def transform(item: dict[str, Any]) -> dict[str, Any]:
        crumb = parse_breadcrumb(item.get(field), separator)
        out = dict(item)
        out[field] = crumb.path
        out["breadcrumb"] = crumb.text
        return out

    return transform


def normalize_scalar(key: str) -> Callable[[Any], Any]:
    """Unwrap `data`; wrap bare scalars as {key: value}."""

    def normalize(payload: Any) -> Any:
        data = unwrap_data(payload)
        if isinstance(data, (dict, list)):
            return data
        return {key: data}

    return normalize
