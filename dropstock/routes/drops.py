"""Drop routes - read-only stock view."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from dropstock.core.utils import model_to_schema, models_to_schemas, success_response, total_pages
from dropstock.dependencies import get_drop_service
from dropstock.models.drop import Drop
from dropstock.schemas.drop import DropListItem, DropPage, DropRead, DropStats, DropView
from dropstock.schemas.purchase import PurchaseRead
from dropstock.services.drop_service import DropService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/drops", tags=["drops"])


def _view(drop: Drop, now) -> DropView:
    base = model_to_schema(drop, DropRead)
    return DropView(**base.model_dump(), has_started=drop.has_started(now))


@router.get("")
async def list_drops(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=100),
    service: DropService = Depends(get_drop_service),
):
    """Drops newest first, each with its three most recent purchases."""
    result = await service.list_drops(page=page, limit=limit, search=search)
    now = service.clock()
    items = [
        DropListItem(
            **_view(drop, now).model_dump(),
            recent_purchases=models_to_schemas(result["recent_purchases"][drop.id], PurchaseRead),
        )
        for drop in result["items"]
    ]
    data = DropPage(
        items=items,
        total=result["total"],
        page=page,
        limit=limit,
        total_pages=total_pages(result["total"], limit),
    )
    return success_response(data, f"Found {result['total']} drops")


@router.get("/{drop_id}/stats")
async def drop_stats(drop_id: int, service: DropService = Depends(get_drop_service)):
    stats = await service.stats(drop_id)
    return success_response(DropStats(**stats))


@router.get("/{drop_id}")
async def get_drop(drop_id: int, service: DropService = Depends(get_drop_service)):
    drop = await service.get_drop(drop_id)
    return success_response(_view(drop, service.clock()))
