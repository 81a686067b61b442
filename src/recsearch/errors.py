"""
Error taxonomy for recommendation search.

- InvalidFilter: request rejected before any storage call.
- UnresolvedTenant: no tenant key could be established; nothing is queried.
- StorageUnavailable / StorageTimeout: transient storage failures, tagged with
  the failing stage ("search", "match", "count" or "lookup").

A search-index that has not yet caught up with recent writes is NOT an error:
the relevance stage simply returns fewer rows. See ``recsearch.search.stores``.
"""

from __future__ import annotations

from typing import Any, Literal

StorageStage = Literal["search", "match", "count", "lookup"]


class SearchError(Exception):
    """Root of the recommendation search errors."""

    default_code: str = "search_error"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.detail: dict[str, Any] = detail or {}

    def to_dict(self) -> dict[str, Any]:
        """Plain dict, safe for logging and HTTP error bodies."""
        return {"code": self.code, "message": self.message, "detail": self.detail}


class InvalidFilter(SearchError):
    """A filter entry is not permitted for its field, or its range is malformed."""

    default_code = "invalid_filter"

    def __init__(
        self,
        message: str,
        *,
        field: str,
        kind: str | None = None,
        operator: str | None = None,
    ) -> None:
        super().__init__(
            message,
            detail={"field": field, "kind": kind, "operator": operator},
        )
        self.field = field
        self.kind = kind
        self.operator = operator


class UnresolvedTenant(SearchError):
    """The caller's tenant key could not be established."""

    default_code = "unresolved_tenant"


class StorageError(SearchError):
    """Base for failures raised by the storage engine."""

    default_code = "storage_error"

    def __init__(self, message: str, *, stage: StorageStage) -> None:
        super().__init__(message, detail={"stage": stage})
        self.stage = stage


class StorageUnavailable(StorageError):
    """The storage engine rejected or could not serve the request."""

    default_code = "storage_unavailable"


class StorageTimeout(StorageError):
    """The storage engine did not answer within the configured deadline."""

    default_code = "storage_timeout"


__all__ = [
    "InvalidFilter",
    "SearchError",
    "StorageError",
    "StorageStage",
    "StorageTimeout",
    "StorageUnavailable",
    "UnresolvedTenant",
]
