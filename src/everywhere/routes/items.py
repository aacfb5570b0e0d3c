"""Endpoint running the action of a search result."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from everywhere.core.errors import ActionFailedError, ItemNotFoundError
from everywhere.core.types import SearchItemType

if TYPE_CHECKING:
    from everywhere.core.service import SearchService

router = APIRouter(prefix="/items", tags=["items"])


class InvokeResponse(BaseModel):
    """Response after running an item's action."""

    success: bool
    item_id: str
    type: SearchItemType


@router.post("/{item_id:path}/invoke", response_model=InvokeResponse)
async def invoke_item(request: Request, item_id: str) -> InvokeResponse:
    """Run the action of an indexed item or recent result.

    Args:
        request: FastAPI request (provides access to app state).
        item_id: Identifier from a search result.

    Returns:
        Confirmation of the invoked item.

    Raises:
        HTTPException: 404 for unknown ids, 500 when the action fails.
    """
    service: SearchService = request.app.state.search_service
    try:
        item = await service.invoke_item(item_id)
    except ItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ActionFailedError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    return InvokeResponse(success=True, item_id=item.id, type=item.type)
