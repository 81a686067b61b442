"""
Pydantic models for API responses.

Request bodies reuse ``recsearch.search.filters.SearchRequest``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["healthy", "degraded", "unhealthy"]
    components: dict[str, str]
    version: str


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    detail: dict | str | None = None
    code: str
