"""
Recommendation search service.

Orchestrates one search call:

    SearchRequest
        -> compile_plan (catalog validation, text normalisation, tenant scope)
        -> store.list  ┐ run concurrently, both cancelled together
        -> store.count ┘
        -> assemble_page

Validation and tenant failures are raised before the store is touched.
The service holds no per-call state; one instance serves concurrent calls.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pymongo import AsyncMongoClient

from ..config.settings import Settings, get_settings
from .compiler import compile_plan, sort_paths
from .filters import SearchRequest
from .plan import QueryPlan
from .results import LastRowPolicy, RecordRow, SearchResultPage, assemble_page
from .stores import MongoRecordStore, RecordStore
from .tenant import DEFAULT_TENANT_FIELD, scope_to_tenant

logger = logging.getLogger("recsearch.service")


class RecommendationSearchService:
    """
    Tenant-scoped search over recommendation records.

    Example:
        ```python
        service = create_search_service()
        page = await service.search("SUB123456", SearchRequest.model_validate(body))
        ```
    """

    def __init__(
        self,
        store: RecordStore,
        tenant_field: str = DEFAULT_TENANT_FIELD,
        last_row_policy: LastRowPolicy = "sentinel",
        client: AsyncMongoClient | None = None,
    ):
        self.store = store
        self.tenant_field = tenant_field
        self.last_row_policy = last_row_policy
        self._client = client

    def compile(self, tenant_key: str | None, request: SearchRequest) -> QueryPlan:
        """Compile ``request`` for ``tenant_key`` without touching the store."""
        return compile_plan(tenant_key, request, self.tenant_field)

    async def list(self, tenant_key: str | None, request: SearchRequest) -> list[dict[str, Any]]:
        """Raw documents of the requested window."""
        plan = self.compile(tenant_key, request)
        return await self.store.list(
            plan, sort_paths(request), request.start_row, request.end_row
        )

    async def count(self, tenant_key: str | None, request: SearchRequest) -> int:
        """Total number of records matching ``request`` (window ignored)."""
        plan = self.compile(tenant_key, request)
        return await self.store.count(plan)

    async def search(self, tenant_key: str | None, request: SearchRequest) -> SearchResultPage:
        """
        Run list and count for ``request`` and assemble the page.

        Raises:
            InvalidFilter: Before any storage call.
            UnresolvedTenant: Before any storage call.
            StorageUnavailable / StorageTimeout: From either operation; the
                other one is cancelled.
        """
        plan = self.compile(tenant_key, request)

        # one row past the window tells whether more data follows
        list_task = asyncio.ensure_future(
            self.store.list(plan, sort_paths(request), request.start_row, request.end_row + 1)
        )
        count_task = asyncio.ensure_future(self.store.count(plan))
        try:
            documents, total = await asyncio.gather(list_task, count_task)
        except BaseException:
            for task in (list_task, count_task):
                task.cancel()
            # both outcomes retrieved before re-raising
            await asyncio.gather(list_task, count_task, return_exceptions=True)
            raise

        has_more = len(documents) > request.page_size
        documents = documents[: request.page_size]

        if total < request.start_row + len(documents):
            # search index moved between the two reads
            logger.warning(
                f"[SERVICE] Count ({total}) below rows seen "
                f"({request.start_row + len(documents)}); index not yet consistent"
            )

        page = assemble_page(
            documents,
            request.start_row,
            request.end_row,
            total=total,
            policy=self.last_row_policy,
            has_more=has_more,
        )
        logger.info(
            f"[SERVICE] Search completed: rows={len(page.rows)}, "
            f"total={total}, last_row={page.last_row}"
        )
        return page

    async def get_record(self, tenant_key: str | None, record_id: str) -> RecordRow | None:
        """Single record by id, or ``None`` if absent or owned by another tenant."""
        tenant = scope_to_tenant(tenant_key, (), (), self.tenant_field).tenant
        document = await self.store.get(tenant, record_id)
        return RecordRow.from_document(document) if document is not None else None

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


def create_search_service(settings: Settings | None = None) -> RecommendationSearchService:
    """
    Create a service backed by MongoDB Atlas.

    Args:
        settings: Optional settings (default: ``get_settings()``).

    Returns:
        RecommendationSearchService owning its AsyncMongoClient.
    """
    settings = settings or get_settings()
    client: AsyncMongoClient = AsyncMongoClient(
        settings.mongodb_uri.get_secret_value(),
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
    )
    collection = client[settings.mongodb_database][settings.mongodb_collection]
    store = MongoRecordStore(
        collection,
        index_name=settings.search_index_name,
        max_time_ms=settings.query_timeout_ms,
    )
    logger.info(
        f"[SERVICE] Using {settings.mongodb_database}.{settings.mongodb_collection} "
        f"(search index '{settings.search_index_name}')"
    )
    return RecommendationSearchService(
        store,
        tenant_field=settings.tenant_field,
        last_row_policy=settings.last_row_policy,
        client=client,
    )
