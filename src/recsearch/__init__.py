"""
recsearch - tenant-scoped recommendation search on MongoDB Atlas.

This package provides:
- A closed field catalog and typed filter model (TEXT / NUMBER / DATE / SET)
- A pure compiler from filter requests to tenant-scoped query plans
- Atlas Search + aggregation execution with consistent list / count paging
- FastAPI endpoints and a Typer CLI

Quick Start:
    ```python
    from recsearch import SearchRequest, create_search_service

    service = create_search_service()
    page = await service.search(
        "SUB123456",
        SearchRequest.model_validate({
            "startRow": 0,
            "endRow": 100,
            "filterModel": {
                "RECOMMENDATION_TITLE": {"kind": "TEXT", "operator": "CONTAINS", "value": "fire"}
            },
        }),
    )
    ```

For API usage:
    ```bash
    uvicorn recsearch.api.main:app --host 0.0.0.0 --port 8000
    ```
"""

from .config.settings import Settings, get_settings
from .errors import (
    InvalidFilter,
    SearchError,
    StorageError,
    StorageTimeout,
    StorageUnavailable,
    UnresolvedTenant,
)
from .search import (
    FilterField,
    FilterKind,
    InMemoryRecordStore,
    MongoRecordStore,
    Operator,
    RecommendationSearchService,
    RecordRow,
    SearchRequest,
    SearchResultPage,
    compile_plan,
    create_search_service,
    resolve_tenant_key,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "SearchError",
    "InvalidFilter",
    "UnresolvedTenant",
    "StorageError",
    "StorageUnavailable",
    "StorageTimeout",
    "FilterField",
    "FilterKind",
    "Operator",
    "SearchRequest",
    "compile_plan",
    "resolve_tenant_key",
    "RecommendationSearchService",
    "create_search_service",
    "MongoRecordStore",
    "InMemoryRecordStore",
    "RecordRow",
    "SearchResultPage",
]
