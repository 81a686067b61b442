"""
Record stores executing a QueryPlan.

Both stores honour the same contract:

- ``list(plan, sort, start_row, end_row)``: search stage (if any), match
  stage (always, tenant scope included), stable sort with storage order as
  tie-breaker, then the window ``[start_row, end_row)``.
- ``count(plan)``: same search + match stages, no sort, no window.
- ``get(tenant, record_id)``: single record, tenant scope re-applied.

Visibility: the match stage reads the primary store, the search stage reads a
search index that is built asynchronously from it. A record written a moment
ago can therefore be missing from text-filtered results (and counts) until
the index catches up. Nothing here waits or retries to hide that; callers
that need the record must poll explicitly (see ``indexes.wait_for_search_index``).
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

from bson import ObjectId
from pymongo.errors import ExecutionTimeout, NetworkTimeout, OperationFailure, PyMongoError

from ..errors import StorageError, StorageStage, StorageTimeout, StorageUnavailable
from .atlas_stages import COUNT_FIELD, build_count_pipeline, build_list_pipeline
from .plan import (
    EqualsClause,
    InClause,
    MatchClause,
    QueryPlan,
    RangeClause,
    TenantClause,
    TextClause,
    as_datetime,
)

if TYPE_CHECKING:
    from pymongo.asynchronous.collection import AsyncCollection

logger = logging.getLogger("recsearch.stores")

DEFAULT_SEARCH_INDEX = "default"


class RecordStore(Protocol):
    """Storage contract the search service runs against."""

    async def list(
        self,
        plan: QueryPlan,
        sort: list[tuple[str, int]],
        start_row: int,
        end_row: int,
    ) -> list[dict[str, Any]]: ...

    async def count(self, plan: QueryPlan) -> int: ...

    async def get(self, tenant: TenantClause, record_id: str) -> dict[str, Any] | None: ...


# ---------------------------------------------------------------------------
# MongoDB Atlas
# ---------------------------------------------------------------------------


def _is_search_failure(exc: BaseException) -> bool:
    """Heuristic: did the failure originate in the $search stage (mongot)?"""
    if not isinstance(exc, OperationFailure):
        return False
    message = str(exc).lower()
    return "$search" in message or "mongot" in message or "search index" in message


def translate_error(exc: PyMongoError, stage: StorageStage, plan: QueryPlan | None = None) -> StorageError:
    """
    Map a driver error onto StorageTimeout / StorageUnavailable.

    The returned message names the stage only; driver text (hosts, URIs) stays
    in the chained cause and the log.
    """
    if plan is not None and plan.has_search_stage and _is_search_failure(exc):
        stage = "search"
    if isinstance(exc, (ExecutionTimeout, NetworkTimeout)):
        return StorageTimeout(f"{stage} stage timed out", stage=stage)
    return StorageUnavailable(f"{stage} stage failed", stage=stage)


class MongoRecordStore:
    """
    RecordStore backed by a MongoDB Atlas collection with an Atlas Search index.

    Args:
        collection: Async PyMongo collection holding the records.
        index_name: Atlas Search index used by the $search stage.
        max_time_ms: Server-side deadline per operation (``None`` = no limit).
    """

    def __init__(
        self,
        collection: "AsyncCollection",
        index_name: str = DEFAULT_SEARCH_INDEX,
        max_time_ms: int | None = None,
    ):
        self.collection = collection
        self.index_name = index_name
        self.max_time_ms = max_time_ms

    def _options(self) -> dict[str, Any]:
        return {"maxTimeMS": self.max_time_ms} if self.max_time_ms else {}

    async def list(
        self,
        plan: QueryPlan,
        sort: list[tuple[str, int]],
        start_row: int,
        end_row: int,
    ) -> list[dict[str, Any]]:
        pipeline = build_list_pipeline(plan, sort, start_row, end_row, self.index_name)
        try:
            cursor = await self.collection.aggregate(pipeline, **self._options())
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error(f"[EXECUTOR] List aggregation failed: {e}")
            raise translate_error(e, "match", plan) from e

        logger.info(
            f"[EXECUTOR] List returned {len(documents)} rows "
            f"(window={start_row}:{end_row}, search_stage={plan.has_search_stage})"
        )
        return documents

    async def count(self, plan: QueryPlan) -> int:
        pipeline = build_count_pipeline(plan, self.index_name)
        try:
            cursor = await self.collection.aggregate(pipeline, **self._options())
            results = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error(f"[EXECUTOR] Count aggregation failed: {e}")
            raise translate_error(e, "count", plan) from e

        total = results[0][COUNT_FIELD] if results else 0
        logger.info(f"[EXECUTOR] Count returned {total}")
        return total

    async def get(self, tenant: TenantClause, record_id: str) -> dict[str, Any] | None:
        if not ObjectId.is_valid(record_id):
            return None
        query = {"_id": ObjectId(record_id), tenant.path: tenant.tenant_key}
        kwargs = {"max_time_ms": self.max_time_ms} if self.max_time_ms else {}
        try:
            return await self.collection.find_one(query, **kwargs)
        except PyMongoError as e:
            logger.error(f"[EXECUTOR] Lookup failed: {e}")
            raise translate_error(e, "lookup") from e


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


def _resolve(document: dict[str, Any], path: str) -> Any:
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _text_matches(clause: TextClause, value: Any) -> bool:
    if not isinstance(value, str):
        return False
    if clause.mode == "exact":
        return value.casefold() == clause.query.casefold()
    return clause.query.casefold() in value.casefold()


def _predicate_matches(clause: MatchClause | TenantClause, document: dict[str, Any]) -> bool:
    value = as_datetime(_resolve(document, clause.path))
    if isinstance(clause, TenantClause):
        return value == clause.tenant_key
    if isinstance(clause, EqualsClause):
        return value == clause.value
    if isinstance(clause, InClause):
        return value in clause.values
    if isinstance(clause, RangeClause):
        if value is None:
            return False
        checks = {
            "gt": lambda b: value > b,
            "gte": lambda b: value >= b,
            "lt": lambda b: value < b,
            "lte": lambda b: value <= b,
        }
        try:
            return all(checks[op](bound) for op, bound in clause.bounds().items())
        except TypeError:
            return False
    raise TypeError(f"Unsupported clause: {clause!r}")


def _type_rank(value: Any) -> int:
    """Cross-type position of ``value``, following the BSON comparison order."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return 7
    if isinstance(value, (int, float)):
        return 1
    if isinstance(value, str):
        return 2
    if isinstance(value, dict):
        return 3
    if isinstance(value, (list, tuple)):
        return 4
    if isinstance(value, bytes):
        return 5
    if isinstance(value, ObjectId):
        return 6
    if isinstance(value, datetime):
        return 8
    return 9


def _sort_key(path: str):
    def key(document: dict[str, Any]) -> tuple:
        value = as_datetime(_resolve(document, path))
        # nulls first, then by type rank, as in MongoDB
        rank = _type_rank(value)
        return (rank,) if rank in (0, 3, 9) else (rank, value)

    return key


class InMemoryRecordStore:
    """
    RecordStore evaluating plans against documents held in process.

    Models the asynchronously built search index: a document inserted with
    ``indexed=False`` is visible to match predicates immediately but to text
    clauses only after ``refresh_search_index()``.

    Args:
        documents: Initial documents (copied, ``_id`` assigned when missing).
        delay: Seconds each read waits before answering.
    """

    def __init__(self, documents: Iterable[dict[str, Any]] = (), delay: float = 0.0):
        self._documents: list[dict[str, Any]] = []
        self._indexed: set[str] = set()
        self.delay = delay
        for document in documents:
            self.insert(document)

    def insert(self, document: dict[str, Any], indexed: bool = True) -> str:
        """Store a copy of ``document``; returns its id."""
        stored = copy.deepcopy(document)
        stored.setdefault("_id", str(ObjectId()))
        stored["_id"] = str(stored["_id"])
        self._documents.append(stored)
        if indexed:
            self._indexed.add(stored["_id"])
        return stored["_id"]

    def refresh_search_index(self) -> None:
        """Make every stored document visible to text clauses."""
        self._indexed = {d["_id"] for d in self._documents}

    def __len__(self) -> int:
        return len(self._documents)

    def _matches(self, plan: QueryPlan, document: dict[str, Any]) -> bool:
        if plan.text_clauses:
            if document["_id"] not in self._indexed:
                return False
            if not all(_text_matches(c, _resolve(document, c.path)) for c in plan.text_clauses):
                return False
        return all(_predicate_matches(c, document) for c in plan.predicates())

    async def _pause(self) -> None:
        await asyncio.sleep(self.delay)

    async def list(
        self,
        plan: QueryPlan,
        sort: list[tuple[str, int]],
        start_row: int,
        end_row: int,
    ) -> list[dict[str, Any]]:
        await self._pause()
        rows = [d for d in self._documents if self._matches(plan, d)]
        # successive stable sorts, least significant key first
        for path, direction in reversed(sort):
            rows.sort(key=_sort_key(path), reverse=direction < 0)
        return copy.deepcopy(rows[start_row:end_row])

    async def count(self, plan: QueryPlan) -> int:
        await self._pause()
        return sum(1 for d in self._documents if self._matches(plan, d))

    async def get(self, tenant: TenantClause, record_id: str) -> dict[str, Any] | None:
        await self._pause()
        for document in self._documents:
            if document["_id"] == record_id and _predicate_matches(tenant, document):
                return copy.deepcopy(document)
        return None
