"""
Scheduler management endpoints
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from dropstock.core.security import get_current_username
from dropstock.core.utils import success_response
from dropstock.scheduler import get_scheduler_status, trigger_sweep_manually

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])


@router.get("/status", response_model=Dict[str, Any])
async def scheduler_status(
    current_user: str = Depends(get_current_username)
):
    """Get current scheduler status and configured jobs"""
    return await get_scheduler_status()


@router.post("/sweep")
async def trigger_sweep(
    current_user: str = Depends(get_current_username)
):
    """Run one expiration sweep now"""
    logger.info(f"User {current_user} manually triggered expiration sweep")
    result = await trigger_sweep_manually()
    message = "Sweep skipped, another sweeper is running" if result.skipped else (
        f"Expired {result.expired_count} reservations"
    )
    return success_response(result.to_dict(), message)
