"""Purchase routes - complete reservations and browse completed sales."""
import logging

from fastapi import APIRouter, Depends, Query, status

from dropstock.core.security import get_holder_id, require_auth
from dropstock.core.utils import models_to_schemas, model_to_schema, success_response, total_pages
from dropstock.dependencies import get_purchase_service
from dropstock.schemas.purchase import PurchaseCreate, PurchasePage, PurchaseRead, PurchaseResultRead
from dropstock.services.purchase_service import PurchaseService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/purchases", tags=["purchases"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def complete_purchase(
    payload: PurchaseCreate,
    holder_id: str = Depends(get_holder_id),
    service: PurchaseService = Depends(get_purchase_service),
):
    """Turn the caller's active reservation into a purchase."""
    result = await service.complete_purchase(holder_id, payload.reservation_id)
    data = PurchaseResultRead(
        sale_id=result.sale_id,
        price=result.price,
        completed_at=result.completed_at,
        purchase=model_to_schema(result.purchase, PurchaseRead),
    )
    return success_response(data, "Purchase completed successfully")


@router.get("/user")
async def list_my_purchases(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    holder_id: str = Depends(get_holder_id),
    service: PurchaseService = Depends(get_purchase_service),
):
    result = await service.list_for_holder(holder_id, page=page, limit=limit)
    data = PurchasePage(
        items=models_to_schemas(result["items"], PurchaseRead),
        total=result["total"],
        page=page,
        limit=limit,
        total_pages=total_pages(result["total"], limit),
    )
    return success_response(data, f"Found {result['total']} purchases")


@router.get("/drop/{drop_id}")
async def recent_purchases_for_drop(
    drop_id: int,
    limit: int = Query(3, ge=1, le=50),
    service: PurchaseService = Depends(get_purchase_service),
):
    """Most recent purchases of a drop, newest first."""
    purchases = await service.recent_for_drop(drop_id, limit=limit)
    return success_response(models_to_schemas(purchases, PurchaseRead))


@router.get("", dependencies=[require_auth()])
async def list_all_purchases(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: PurchaseService = Depends(get_purchase_service),
):
    """Every purchase, newest first. Admin only."""
    result = await service.list_all(page=page, limit=limit)
    data = PurchasePage(
        items=models_to_schemas(result["items"], PurchaseRead),
        total=result["total"],
        page=page,
        limit=limit,
        total_pages=total_pages(result["total"], limit),
    )
    return success_response(data, f"Found {result['total']} purchases")


@router.get("/stats", dependencies=[require_auth()])
async def purchase_stats(service: PurchaseService = Depends(get_purchase_service)):
    return success_response(await service.stats())


@router.get("/{purchase_id}")
async def get_purchase(
    purchase_id: int,
    holder_id: str = Depends(get_holder_id),
    service: PurchaseService = Depends(get_purchase_service),
):
    purchase = await service.get_purchase(holder_id, purchase_id)
    return success_response(model_to_schema(purchase, PurchaseRead))
