# composer/domain/types.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Generic, List, NamedTuple, Optional, TypeVar, Union

Identifier = Union[int, str]
Timestamp = Union[datetime, str, None]

T = TypeVar("T")


@dataclass(frozen=True)
class OrderedItem:
    """
    A record participating in an ordered sequence.

    The engine only reads ``id``, ``position`` and ``active``; ``payload``
    carries the type-specific fields (block type, linked category, …).
    """
    id: Identifier
    position: int
    active: bool = True
    payload: Dict[str, Any] = field(default_factory=dict)
    collection_id: Optional[str] = None

    def with_position(self, position: int) -> "OrderedItem":
        return replace(self, position=position)

    def with_active(self, active: bool) -> "OrderedItem":
        return replace(self, active=active)


@dataclass(frozen=True)
class CampaignWindow:
    starts_at: Timestamp = None
    ends_at: Timestamp = None
    show_countdown: bool = False

    @property
    def is_set(self) -> bool:
        return self.starts_at not in (None, "") and self.ends_at not in (None, "")


@dataclass
class CategoryNode:
    id: Identifier
    name: str
    slug: str
    parent_id: Optional[Identifier] = None
    active: bool = True
    is_campaign: bool = False
    campaign: Optional[CampaignWindow] = None
    position: int = 0
    children: List["CategoryNode"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategoryNode":
        """Build a node (and its subtree) from a store/API payload."""
        campaign = None
        if data.get("starts_at") is not None or data.get("ends_at") is not None:
            campaign = CampaignWindow(
                starts_at=data.get("starts_at"),
                ends_at=data.get("ends_at"),
                show_countdown=bool(data.get("show_countdown", False)),
            )

        return cls(
            id=data["id"],
            name=data["name"],
            slug=data.get("slug") or "",
            parent_id=data.get("parent_id"),
            active=bool(data.get("is_active", data.get("active", True))),
            is_campaign=bool(data.get("is_campaign", False)),
            campaign=campaign,
            position=int(data.get("ordering", data.get("position", 0)) or 0),
            children=[cls.from_dict(c) for c in data.get("children") or []],
        )


class ParentOption(NamedTuple):
    id: Identifier
    label: str


class ReparentInstruction(NamedTuple):
    node_id: Identifier
    parent_id: Optional[Identifier]

    def as_fields(self) -> Dict[str, Any]:
        return {"parent_id": self.parent_id}


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a check that fails without raising.

    Callers either branch on ``ok`` or call ``unwrap()`` to re-enter the
    exception flow.
    """
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> Optional[T]:
        if self.error is not None:
            raise self.error
        return self.value
