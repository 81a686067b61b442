"""
QueryPlan: compiled, storage-agnostic form of one search call.

    QueryPlan
    ├── text_clauses   -> search-relevance stage (absent when empty)
    ├── match_clauses  -> AND-ed exact / range / set predicates
    └── tenant         -> mandatory tenant-scope predicate, always last

Stores translate a plan into their own query language
(see ``atlas_stages`` for MongoDB Atlas).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Literal, Union

TextMode = Literal["exact", "partial"]


@dataclass(frozen=True)
class TextClause:
    """Search-relevance constraint on one searchable field."""

    path: str
    query: str
    mode: TextMode


@dataclass(frozen=True)
class EqualsClause:
    path: str
    value: Any


@dataclass(frozen=True)
class RangeClause:
    """Bound(s) on an ordered field. Unset bounds are ``None``."""

    path: str
    gt: Any = None
    gte: Any = None
    lt: Any = None
    lte: Any = None

    def bounds(self) -> dict[str, Any]:
        """Set bounds only, keyed by operator name."""
        return {
            op: v
            for op, v in (("gt", self.gt), ("gte", self.gte), ("lt", self.lt), ("lte", self.lte))
            if v is not None
        }


@dataclass(frozen=True)
class InClause:
    """Set membership. An empty ``values`` tuple matches nothing."""

    path: str
    values: tuple[Any, ...]


MatchClause = Union[EqualsClause, RangeClause, InClause]


@dataclass(frozen=True)
class TenantClause:
    path: str
    tenant_key: str


@dataclass(frozen=True)
class QueryPlan:
    tenant: TenantClause
    text_clauses: tuple[TextClause, ...] = ()
    match_clauses: tuple[MatchClause, ...] = ()

    @property
    def has_search_stage(self) -> bool:
        return bool(self.text_clauses)

    def predicates(self) -> tuple[MatchClause | TenantClause, ...]:
        """Match-stage predicates in evaluation order, tenant scope last."""
        return (*self.match_clauses, self.tenant)


def as_datetime(value: Any) -> Any:
    """Normalise dates to naive UTC datetimes, the form BSON round-trips.

    Non-date values are returned unchanged.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    return value
