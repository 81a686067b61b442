"""
FastAPI application for recsearch.

Endpoints:
- POST /api/recommendations/list   tenant-scoped filtered, sorted, paged search
- GET  /api/recommendations/{id}   single record of the caller's tenant
- GET  /health, /ready

The tenant is resolved from the ``submission-id`` header before any query runs.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .. import __version__
from ..config.settings import get_settings
from ..errors import InvalidFilter, SearchError, StorageTimeout, StorageUnavailable, UnresolvedTenant
from ..search.filters import SearchRequest
from ..search.results import RecordRow, SearchResultPage
from ..search.service import RecommendationSearchService, create_search_service
from ..search.tenant import resolve_tenant_key
from .models import ErrorResponse, HealthResponse

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger("recsearch.api")

_STATUS_BY_ERROR: list[tuple[type[SearchError], int]] = [
    (InvalidFilter, 400),
    (UnresolvedTenant, 401),
    (StorageTimeout, 504),
    (StorageUnavailable, 503),
]

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


def get_service(request: Request) -> RecommendationSearchService:
    """Get the service attached to the running application."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(
            status_code=503,
            detail="Search service not initialized",
        )
    return service


def get_tenant_key(submission_id: str | None = Header(default=None, alias="submission-id")) -> str:
    """Resolve the caller's tenant key from the ``submission-id`` header."""
    return resolve_tenant_key(submission_id)


def create_app(service: RecommendationSearchService | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        service: Pre-built service. When omitted, a MongoDB-backed service is
            created on startup and closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owned = service is None
        if owned:
            settings = get_settings()
            logging.getLogger("recsearch").setLevel(settings.log_level)
            app.state.service = create_search_service(settings)
        else:
            app.state.service = service

        yield

        if owned:
            await app.state.service.close()
        app.state.service = None

    app = FastAPI(
        title="recsearch API",
        description="Tenant-scoped recommendation search on MongoDB Atlas",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    register_error_handlers(app)
    register_routes(app)

    return app


def register_error_handlers(app: FastAPI) -> None:
    """Map search errors and malformed requests to HTTP responses."""

    @app.exception_handler(SearchError)
    async def search_error_handler(request: Request, exc: SearchError) -> JSONResponse:
        status = next((s for cls, s in _STATUS_BY_ERROR if isinstance(exc, cls)), 500)
        if status >= 500:
            logger.error(f"[API] {request.url.path} failed: {exc.code} {exc.detail}")
        body = ErrorResponse(error=exc.message, detail=exc.detail, code=exc.code)
        return JSONResponse(status_code=status, content=body.model_dump())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        body = ErrorResponse(
            error="Request validation failed",
            detail="; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            ),
            code="invalid_request",
        )
        return JSONResponse(status_code=400, content=body.model_dump())


def register_routes(app: FastAPI) -> None:
    """Register all API routes."""

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["health"],
    )
    async def health_check(request: Request) -> HealthResponse:
        """Check system health."""
        components: dict[str, str] = {"api": "healthy"}
        components["search"] = "healthy" if request.app.state.service is not None else "unhealthy"

        overall = "healthy" if all(v == "healthy" for v in components.values()) else "degraded"

        return HealthResponse(
            status=overall,
            components=components,
            version=__version__,
        )

    @app.get("/ready", tags=["health"])
    async def readiness_check(request: Request) -> dict:
        """Kubernetes readiness probe."""
        return {"ready": request.app.state.service is not None}

    @app.post(
        "/api/recommendations/list",
        response_model=SearchResultPage,
        responses=_ERROR_RESPONSES,
        tags=["recommendations"],
    )
    async def search_recommendations(
        body: SearchRequest,
        tenant_key: str = Depends(get_tenant_key),
        service: RecommendationSearchService = Depends(get_service),
    ) -> SearchResultPage:
        """
        Search the caller's recommendations.

        Filter kinds:
        - **TEXT**: EQUALS (exact term) or CONTAINS (partial), blank values ignored
        - **NUMBER / DATE**: EQUALS, LESS_THAN(_OR_EQUAL), GREATER_THAN(_OR_EQUAL), IN_RANGE
        - **SET**: membership; an empty list matches nothing

        ``lastRow`` is -1 while more rows may exist, otherwise the row count.
        """
        return await service.search(tenant_key, body)

    @app.get(
        "/api/recommendations/{record_id}",
        response_model=RecordRow,
        responses={404: {"model": ErrorResponse}, **_ERROR_RESPONSES},
        tags=["recommendations"],
    )
    async def get_recommendation(
        record_id: str,
        tenant_key: str = Depends(get_tenant_key),
        service: RecommendationSearchService = Depends(get_service),
    ) -> RecordRow:
        """Get one recommendation of the caller's tenant."""
        row = await service.get_record(tenant_key, record_id)
        if row is None:
            raise HTTPException(status_code=404, detail="Recommendation not found")
        return row


# Create default app instance
app = create_app()
