"""
Atlas aggregation builders for a QueryPlan.

CRITICAL: The two stages use DIFFERENT operator syntaxes.
- $search (search-relevance stage) uses ATLAS SEARCH operators
  (equals, autocomplete) against the search index.
- $match uses STANDARD MongoDB operators ($eq, $gte, $in) against the
  primary store, so match predicates see writes immediately while $search
  follows the asynchronously built index.

List pipeline:
[
    {"$search": {"index": "default", "compound": {"must": [
        {"autocomplete": {"query": "fire", "path": "recommendationTitle"}}
    ]}}},
    {"$match": {"$and": [
        {"recommendationStatus": {"$in": ["OPEN"]}},
        {"submissionBaseNr": "SUB123456"}
    ]}},
    {"$sort": {"dueDate": 1, "_id": 1}},
    {"$skip": 0},
    {"$limit": 100}
]

The count pipeline is the same $search + $match followed by $count.
"""

from __future__ import annotations

from typing import Any

from .plan import EqualsClause, InClause, MatchClause, QueryPlan, RangeClause, TenantClause, TextClause

COUNT_FIELD = "total"


def build_text_operator(clause: TextClause) -> dict[str, Any]:
    """
    Atlas Search operator for one text clause.

    exact   -> ``equals`` on the lowercase-normalised ``token`` mapping
    partial -> ``autocomplete`` on the nGram ``autocomplete`` mapping
    """
    if clause.mode == "exact":
        return {"equals": {"path": clause.path, "value": clause.query.lower()}}
    return {
        "autocomplete": {
            "query": clause.query,
            "path": clause.path,
            "tokenOrder": "any",
        }
    }


def build_search_stage(plan: QueryPlan, index_name: str) -> dict[str, Any] | None:
    """
    Build the $search stage, or ``None`` when the plan has no text clauses.

    Multiple text clauses are independent constraints, so all of them go
    into ``compound.must``.
    """
    if not plan.text_clauses:
        return None
    must = [build_text_operator(c) for c in plan.text_clauses]
    return {"$search": {"index": index_name, "compound": {"must": must}}}


def build_predicate(clause: MatchClause | TenantClause) -> dict[str, Any]:
    """Standard MongoDB predicate for one match or tenant clause."""
    if isinstance(clause, TenantClause):
        return {clause.path: clause.tenant_key}
    if isinstance(clause, EqualsClause):
        return {clause.path: clause.value}
    if isinstance(clause, InClause):
        return {clause.path: {"$in": list(clause.values)}}
    if isinstance(clause, RangeClause):
        return {clause.path: {f"${op}": v for op, v in clause.bounds().items()}}
    raise TypeError(f"Unsupported clause: {clause!r}")


def build_match_stage(plan: QueryPlan) -> dict[str, Any]:
    """
    Build the $match stage.

    Predicates are always combined with $and so two clauses on the same path
    cannot overwrite each other; the tenant predicate is the last element.
    """
    return {"$match": {"$and": [build_predicate(c) for c in plan.predicates()]}}


def build_sort_stage(sort: list[tuple[str, int]]) -> dict[str, Any]:
    """$sort with ``_id`` ascending appended as deterministic tie-breaker."""
    spec: dict[str, int] = {}
    for path, direction in sort:
        spec.setdefault(path, direction)
    spec.setdefault("_id", 1)
    return {"$sort": spec}


def build_predicate_stages(plan: QueryPlan, index_name: str) -> list[dict[str, Any]]:
    """$search (if any) followed by $match; shared by list and count."""
    stages: list[dict[str, Any]] = []
    search = build_search_stage(plan, index_name)
    if search is not None:
        stages.append(search)
    stages.append(build_match_stage(plan))
    return stages


def build_list_pipeline(
    plan: QueryPlan,
    sort: list[tuple[str, int]],
    start_row: int,
    end_row: int,
    index_name: str,
) -> list[dict[str, Any]]:
    """Full list pipeline for the window ``[start_row, end_row)``."""
    return [
        *build_predicate_stages(plan, index_name),
        build_sort_stage(sort),
        {"$skip": start_row},
        {"$limit": end_row - start_row},
    ]


def build_count_pipeline(plan: QueryPlan, index_name: str) -> list[dict[str, Any]]:
    """Count pipeline over the same predicate stages, no sort or window."""
    return [*build_predicate_stages(plan, index_name), {"$count": COUNT_FIELD}]
