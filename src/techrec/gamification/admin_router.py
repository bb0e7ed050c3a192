"""Admin points endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends

from techrec.auth.dependencies import require_admin
from techrec.db.models import User
from techrec.dependencies import get_event_manager
from techrec.gamification.event_manager import GamificationEventManager
from techrec.gamification.http_errors import unwrap
from techrec.gamification.schemas import (
    AdminAwardPointsRequest,
    AdminPointsResponse,
    AdminSetPointsRequest,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/admin/gamification", tags=["Admin"])


@router.post("/points/award", response_model=AdminPointsResponse)
async def award_points(
    body: AdminAwardPointsRequest,
    admin: User = Depends(require_admin),
    manager: GamificationEventManager = Depends(get_event_manager),
):
    """Credit earned points to a user."""
    outcome = unwrap(await manager.credit_points(
        body.user_id,
        body.amount,
        body.source,
        description=body.description or f"Awarded by admin {admin.id}",
        source_id=body.source_id,
    ))
    logger.info("admin_points_awarded", admin_id=admin.id, user_id=body.user_id, amount=body.amount)
    return AdminPointsResponse.model_validate(outcome)


@router.post("/points/set", response_model=AdminPointsResponse)
async def set_points(
    body: AdminSetPointsRequest,
    admin: User = Depends(require_admin),
    manager: GamificationEventManager = Depends(get_event_manager),
):
    """Set a user's available balance to an exact value."""
    outcome = unwrap(await manager.set_exact_points(
        body.user_id,
        body.target,
        description=body.description or f"Set by admin {admin.id}",
    ))
    logger.info("admin_points_set", admin_id=admin.id, user_id=body.user_id, delta=outcome["delta"])
    return AdminPointsResponse.model_validate(outcome)
