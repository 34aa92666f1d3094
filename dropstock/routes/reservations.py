"""Reservation routes - create, inspect and cancel holds on drop stock."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from dropstock.core.enums import ReservationStatus
from dropstock.core.security import get_holder_id, require_auth
from dropstock.core.utils import Clock, success_response
from dropstock.dependencies import get_clock, get_reservation_service
from dropstock.schemas.reservation import ReservationCreate, ReservationView, ReserveResult
from dropstock.services.reservation_service import ReservationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/reservations", tags=["reservations"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    holder_id: str = Depends(get_holder_id),
    service: ReservationService = Depends(get_reservation_service),
    clock: Clock = Depends(get_clock),
):
    """Reserve one unit of a drop for the caller."""
    result = await service.reserve(holder_id, payload.drop_id)
    data = ReserveResult(
        hold_id=result.hold_id,
        deadline=result.deadline,
        new_stock=result.new_stock,
        reservation=ReservationView.from_model(result.reservation, clock()),
    )
    return success_response(data, "Reservation created successfully")


@router.get("/user")
async def list_my_reservations(
    status_filter: Optional[ReservationStatus] = Query(None, alias="status"),
    holder_id: str = Depends(get_holder_id),
    service: ReservationService = Depends(get_reservation_service),
    clock: Clock = Depends(get_clock),
):
    reservations = await service.list_for_holder(holder_id, status_filter)
    now = clock()
    return success_response(
        [ReservationView.from_model(r, now) for r in reservations],
        f"Found {len(reservations)} reservations",
    )


@router.get("", dependencies=[require_auth()])
async def list_reservations(
    status_filter: ReservationStatus = Query(ReservationStatus.ACTIVE, alias="status"),
    service: ReservationService = Depends(get_reservation_service),
    clock: Clock = Depends(get_clock),
):
    """All reservations in one state (admin)."""
    reservations = await service.list_all(status_filter)
    now = clock()
    return success_response(
        [ReservationView.from_model(r, now) for r in reservations],
        f"Found {len(reservations)} {status_filter.value} reservations",
    )


@router.get("/{reservation_id}")
async def get_reservation(
    reservation_id: int,
    holder_id: str = Depends(get_holder_id),
    service: ReservationService = Depends(get_reservation_service),
    clock: Clock = Depends(get_clock),
):
    reservation = await service.get_reservation(holder_id, reservation_id)
    return success_response(ReservationView.from_model(reservation, clock()))


@router.delete("/{reservation_id}")
async def cancel_reservation(
    reservation_id: int,
    holder_id: str = Depends(get_holder_id),
    service: ReservationService = Depends(get_reservation_service),
):
    """Cancel the caller's active reservation and release its unit."""
    await service.cancel(holder_id, reservation_id)
    return success_response({}, "Reservation cancelled successfully")
