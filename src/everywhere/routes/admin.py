"""Index maintenance and configuration endpoints."""

from typing import TYPE_CHECKING

import structlog
from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from everywhere.core.service import IndexStats

if TYPE_CHECKING:
    from everywhere.core.service import SearchService

logger = structlog.get_logger()

router = APIRouter(tags=["admin"])


class RebuildResponse(BaseModel):
    """Outcome of a forced index rebuild."""

    success: bool
    items: int
    message: str


class BenchmarkResponse(BaseModel):
    """Mean search time per scorer, in milliseconds."""

    query: str
    items: int
    timings_ms: dict[str, float]


class SettingsUpdate(BaseModel):
    """Partial configuration change; omitted fields keep their value."""

    include_files: bool | None = None
    include_symbols: bool | None = None
    include_commands: bool | None = None
    include_text: bool | None = None
    activity_enabled: bool | None = None
    activity_weight: float | None = None
    max_results: int | None = None
    max_text_results: int | None = None
    fuzzy_library: str | None = Field(default=None, max_length=50)
    preview_enabled: bool | None = None
    exclusions_raw: str | None = Field(default=None, max_length=10000)
    activity_debounce_ms: int | None = None
    index_update_debounce_ms: int | None = None


class SettingsResponse(BaseModel):
    """Active search configuration after an update."""

    include_files: bool
    include_symbols: bool
    include_commands: bool
    include_text: bool
    activity_enabled: bool
    activity_weight: float
    max_results: int
    max_text_results: int
    fuzzy_library: str
    preview_enabled: bool
    exclusions: list[str]


@router.post("/index/rebuild", response_model=RebuildResponse)
async def rebuild_index(request: Request) -> RebuildResponse:
    """Force every provider to re-enumerate and rebuild the index.

    Returns:
        Whether the rebuild succeeded and the resulting index size.
    """
    service: SearchService = request.app.state.search_service
    try:
        await service.refresh_index(force=True)
    except Exception as e:
        logger.exception("index_rebuild_failed")
        return RebuildResponse(success=False, items=len(service.items), message=str(e))
    return RebuildResponse(
        success=True,
        items=len(service.items),
        message="Search index rebuilt successfully",
    )


@router.get("/index/stats", response_model=IndexStats)
async def index_stats(request: Request) -> IndexStats:
    """Summarize the aggregated index."""
    service: SearchService = request.app.state.search_service
    return service.stats()


@router.get("/index/benchmarks", response_model=BenchmarkResponse)
async def benchmarks(
    request: Request,
    q: str = Query(default="test", min_length=1, max_length=200),
) -> BenchmarkResponse:
    """Time every available scorer over the current index.

    Args:
        request: FastAPI request (provides access to app state).
        q: Query to rank with.

    Returns:
        Mean milliseconds per search for each scorer.
    """
    service: SearchService = request.app.state.search_service
    timings = await service.run_benchmarks(q)
    return BenchmarkResponse(query=q, items=len(service.items), timings_ms=timings)


@router.put("/settings", response_model=SettingsResponse)
async def update_settings(request: Request, body: SettingsUpdate) -> SettingsResponse:
    """Apply a configuration change to the running service.

    Invalid values fall back to their defaults; out-of-range values are
    clamped.

    Args:
        request: FastAPI request (provides access to app state).
        body: Fields to change.

    Returns:
        The configuration now in effect.
    """
    service: SearchService = request.app.state.search_service
    settings = service.settings.updated(**body.model_dump(exclude_none=True))
    await service.apply_settings(settings)
    request.app.state.settings = settings
    return SettingsResponse(
        **settings.model_dump(include=set(SettingsResponse.model_fields) - {"exclusions"}),
        exclusions=settings.exclusions,
    )
