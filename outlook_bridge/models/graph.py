"""Models describing paginated Microsoft Graph results."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

NEXT_LINK_FIELD = "@odata.nextLink"


class PageResult(BaseModel):
    """One page of a Graph collection response."""

    items: List[Dict[str, Any]] = Field(default_factory=list)
    next_link: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "PageResult":
        value = payload.get("value")
        items = list(value) if isinstance(value, list) else []
        return cls(items=items, next_link=payload.get(NEXT_LINK_FIELD) or None)


class AggregatedResult(BaseModel):
    """Concatenation of fetched pages, truncated to the requested cap."""

    items: List[Dict[str, Any]] = Field(default_factory=list)
    pages_fetched: int = 0

    @computed_field  # type: ignore[misc]
    @property
    def count(self) -> int:
        return len(self.items)

    def to_graph_payload(self) -> Dict[str, Any]:
        return {"value": list(self.items), "@odata.count": self.count}


__all__ = ["AggregatedResult", "NEXT_LINK_FIELD", "PageResult"]
