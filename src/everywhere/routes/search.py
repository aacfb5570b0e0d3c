"""Search endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Query, Request

from everywhere.search.schemas import FilterCategory, SearchResponse, SearchResultItem

if TYPE_CHECKING:
    from everywhere.core.service import SearchService

router = APIRouter(tags=["search"])


@router.get(
    "/search",
    response_model=SearchResponse,
    summary="Fuzzy search across files, symbols, actions and text",
    description="Ranks the workspace index against the query; a blank query lists by priority.",
)
async def search(
    request: Request,
    q: str = Query(default="", max_length=200, description="Search query string"),
    category: FilterCategory = Query(
        default=FilterCategory.ALL,
        description="Restrict results to one category",
    ),
) -> SearchResponse:
    """Search the workspace index.

    Args:
        request: FastAPI request (provides access to app state).
        q: Search query string (up to 200 characters).
        category: Result category filter.

    Returns:
        Ranked results, best first.
    """
    service: SearchService = request.app.state.search_service
    results = await service.search(q, category)
    return SearchResponse(
        query=q,
        category=category,
        results=[SearchResultItem.from_scored(result) for result in results],
        total=len(results),
        preview=service.settings.preview_enabled,
    )
