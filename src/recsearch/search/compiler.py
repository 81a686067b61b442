"""
Filter compiler: (tenant key, SearchRequest) -> QueryPlan.

Pure transformation, no I/O. Rules per entry:

1. kind and operator must be allowed for the field by the catalog,
   otherwise ``InvalidFilter``.
2. TEXT with a blank value is dropped (no text constraint).
3. TEXT with a value becomes a search-relevance clause
   (EQUALS -> exact term, CONTAINS -> partial / prefix).
4. NUMBER / DATE become equality, single bound or inclusive range clauses.
5. SET becomes a membership clause; an empty list matches nothing.
6. Match clauses are AND-ed, then the tenant scope is folded in last.

Validation is fail-fast: the first invalid entry aborts compilation and no
partial plan is ever returned.
"""

from __future__ import annotations

import logging
from typing import Any

from ..errors import InvalidFilter
from .catalog import FilterField, Operator, allowed_kinds, allowed_operators, storage_path
from .filters import DateFilter, FilterEntry, NumberFilter, SearchRequest, SetFilter, TextFilter
from .plan import (
    EqualsClause,
    InClause,
    MatchClause,
    QueryPlan,
    RangeClause,
    TextClause,
    as_datetime,
)
from .tenant import DEFAULT_TENANT_FIELD, scope_to_tenant

logger = logging.getLogger("recsearch.compiler")

_BOUND_KEYS: dict[Operator, str] = {
    Operator.LESS_THAN: "lt",
    Operator.LESS_THAN_OR_EQUAL: "lte",
    Operator.GREATER_THAN: "gt",
    Operator.GREATER_THAN_OR_EQUAL: "gte",
}


def normalize_filters(
    filter_model: dict[FilterField, FilterEntry],
) -> dict[FilterField, FilterEntry]:
    """Drop TEXT entries whose value is blank; they carry no constraint."""
    return {
        field: entry
        for field, entry in filter_model.items()
        if not (isinstance(entry, TextFilter) and not entry.value.strip())
    }


def validate_entry(field: FilterField, entry: FilterEntry) -> None:
    """Check ``entry`` against the catalog; raise ``InvalidFilter`` if not allowed."""
    kind = entry.filter_kind
    operator = getattr(entry, "operator", None)

    if kind not in allowed_kinds(field):
        raise InvalidFilter(
            f"{kind.value} filters are not allowed on {field.value}",
            field=field.value,
            kind=kind.value,
            operator=operator.value if operator else None,
        )
    if operator is not None and operator not in allowed_operators(field, kind):
        raise InvalidFilter(
            f"operator {operator.value} is not allowed on {field.value}",
            field=field.value,
            kind=kind.value,
            operator=operator.value,
        )


def search_clause(field: FilterField, entry: TextFilter) -> TextClause:
    """Search-relevance clause for a non-blank TEXT entry."""
    mode = "exact" if entry.operator is Operator.EQUALS else "partial"
    return TextClause(path=storage_path(field), query=entry.value.strip(), mode=mode)


def _comparison_clause(field: FilterField, entry: NumberFilter | DateFilter) -> MatchClause:
    path = storage_path(field)
    is_date = isinstance(entry, DateFilter)

    def norm(v: Any) -> Any:
        return as_datetime(v) if is_date else v

    if entry.operator is Operator.IN_RANGE:
        bounds = entry.range
        if bounds is None or len(bounds) != 2:
            raise InvalidFilter(
                f"IN_RANGE on {field.value} needs a two-element range",
                field=field.value,
                kind=entry.filter_kind.value,
                operator=entry.operator.value,
            )
        low, high = norm(bounds[0]), norm(bounds[1])
        if low > high:
            raise InvalidFilter(
                f"IN_RANGE on {field.value} has lower bound above upper bound",
                field=field.value,
                kind=entry.filter_kind.value,
                operator=entry.operator.value,
            )
        return RangeClause(path=path, gte=low, lte=high)

    if entry.value is None:
        raise InvalidFilter(
            f"{entry.operator.value} on {field.value} needs a value",
            field=field.value,
            kind=entry.filter_kind.value,
            operator=entry.operator.value,
        )
    value = norm(entry.value)
    if entry.operator is Operator.EQUALS:
        return EqualsClause(path=path, value=value)
    return RangeClause(path=path, **{_BOUND_KEYS[entry.operator]: value})


def match_clause(field: FilterField, entry: NumberFilter | DateFilter | SetFilter) -> MatchClause:
    """Match-stage clause for a NUMBER, DATE or SET entry."""
    if isinstance(entry, SetFilter):
        return InClause(path=storage_path(field), values=tuple(entry.values))
    return _comparison_clause(field, entry)


def compile_plan(
    tenant_key: str | None,
    request: SearchRequest,
    tenant_field: str = DEFAULT_TENANT_FIELD,
) -> QueryPlan:
    """
    Compile a search request into a tenant-scoped QueryPlan.

    Args:
        tenant_key: Resolved tenant key of the caller.
        request: Parsed search request.
        tenant_field: Document path holding the tenant key.

    Returns:
        QueryPlan with text clauses, AND-ed match clauses and tenant scope.

    Raises:
        InvalidFilter: On the first entry not allowed by the catalog or with a
            malformed range.
        UnresolvedTenant: If ``tenant_key`` is missing.
    """
    for field, entry in request.filter_model.items():
        validate_entry(field, entry)

    text_clauses: list[TextClause] = []
    match_clauses: list[MatchClause] = []

    for field, entry in normalize_filters(request.filter_model).items():
        if isinstance(entry, TextFilter):
            text_clauses.append(search_clause(field, entry))
        else:
            match_clauses.append(match_clause(field, entry))

    plan = scope_to_tenant(tenant_key, text_clauses, match_clauses, tenant_field)

    logger.debug(
        f"[COMPILER] Compiled plan: text_clauses={len(plan.text_clauses)}, "
        f"match_clauses={len(plan.match_clauses)}, "
        f"dropped={len(request.filter_model) - len(text_clauses) - len(match_clauses)}"
    )
    return plan


def sort_paths(request: SearchRequest) -> list[tuple[str, int]]:
    """Storage paths and directions (1 / -1) of the request's sort model."""
    return [
        (storage_path(item.field), 1 if item.direction == "asc" else -1)
        for item in request.sort_model
    ]


__all__ = [
    "compile_plan",
    "match_clause",
    "normalize_filters",
    "search_clause",
    "sort_paths",
    "validate_entry",
]
