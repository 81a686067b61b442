"""
Recommendation search engine.

Compiles declarative filter / sort / page requests into tenant-scoped query
plans and executes them against a record store:

1. Field catalog  - which fields accept which filter kinds and operators
2. Compiler       - SearchRequest -> QueryPlan (tenant scope folded in last)
3. Atlas stages   - QueryPlan -> $search / $match / $sort / window pipelines
4. Stores         - MongoDB Atlas and in-memory execution of a plan
5. Results        - rows + lastRow paging signal
"""

from .atlas_stages import build_count_pipeline, build_list_pipeline, build_search_stage
from .catalog import CATALOG, FilterField, FilterKind, Operator, allowed_kinds, allowed_operators, storage_path
from .compiler import compile_plan, normalize_filters
from .filters import DateFilter, FilterEntry, NumberFilter, SearchRequest, SetFilter, SortItem, TextFilter
from .indexes import build_search_index_definition, ensure_search_index, wait_for_search_index
from .plan import QueryPlan
from .results import UNKNOWN_LAST_ROW, RecordRow, SearchResultPage, assemble_page
from .service import RecommendationSearchService, create_search_service
from .stores import InMemoryRecordStore, MongoRecordStore, RecordStore
from .tenant import resolve_tenant_key, scope_to_tenant

__all__ = [
    # Catalog
    "CATALOG",
    "FilterField",
    "FilterKind",
    "Operator",
    "allowed_kinds",
    "allowed_operators",
    "storage_path",
    # Requests
    "SearchRequest",
    "SortItem",
    "FilterEntry",
    "TextFilter",
    "NumberFilter",
    "DateFilter",
    "SetFilter",
    # Compilation
    "QueryPlan",
    "compile_plan",
    "normalize_filters",
    "resolve_tenant_key",
    "scope_to_tenant",
    # Atlas
    "build_search_stage",
    "build_list_pipeline",
    "build_count_pipeline",
    "build_search_index_definition",
    "ensure_search_index",
    "wait_for_search_index",
    # Execution
    "RecordStore",
    "MongoRecordStore",
    "InMemoryRecordStore",
    "RecommendationSearchService",
    "create_search_service",
    # Results
    "RecordRow",
    "SearchResultPage",
    "UNKNOWN_LAST_ROW",
    "assemble_page",
]
