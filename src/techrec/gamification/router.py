"""Gamification API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from techrec.auth.dependencies import get_current_user, require_admin
from techrec.db.models import User
from techrec.dependencies import get_event_manager
from techrec.gamification.badge_definitions import visible_badges
from techrec.gamification.event_manager import GamificationEventManager, XPAwardEvent
from techrec.gamification.http_errors import status_for, unwrap
from techrec.gamification.level_curve import get_level_curve
from techrec.gamification.results import Err
from techrec.gamification.schemas import (
    AllBadgesResponse,
    AllLevelsResponse,
    AwardXPRequest,
    AwardXPResponse,
    BadgeDefinitionResponse,
    GamificationProfileResponse,
    LeaderboardEntry,
    LeaderboardResponse,
    LevelEntry,
    PointsOverviewResponse,
    SpendRequest,
    SpendResponse,
    TriggerEventRequest,
    TriggerEventResponse,
    XPHistoryResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


# ── Public endpoints ──


@router.get("/levels", response_model=AllLevelsResponse)
async def list_levels():
    """Get the full level curve."""
    curve = get_level_curve()
    return AllLevelsResponse(
        levels=[LevelEntry(**entry) for entry in curve.table()],
        base=curve.base,
        exponent=curve.exponent,
        max_level=curve.max_level,
    )


@router.get("/badges", response_model=AllBadgesResponse)
async def list_badges():
    """Get all visible badge definitions."""
    badges = [BadgeDefinitionResponse(**b.to_dict()) for b in visible_badges()]
    return AllBadgesResponse(badges=badges, total=len(badges))


# ── XP and events ──


@router.post("/gamification/xp", response_model=AwardXPResponse)
async def award_xp(
    body: AwardXPRequest,
    _admin: User = Depends(require_admin),
    manager: GamificationEventManager = Depends(get_event_manager),
):
    """Award XP to a user on behalf of a platform service."""
    result = await manager.award_xp(XPAwardEvent(
        user_id=body.user_id,
        amount=body.amount,
        source=body.source,
        source_id=body.source_id,
        description=body.description,
    ))
    if isinstance(result, Err):
        return JSONResponse(
            status_code=status_for(result.error),
            content=AwardXPResponse(success=False, error=result.message).model_dump(by_alias=True),
        )
    return AwardXPResponse(
        success=True,
        xp_awarded=result.value["xp_awarded"],
        new_level=result.value["new_level"],
        total_xp=result.value["total_xp"],
    )


@router.post("/gamification/events", response_model=TriggerEventResponse)
async def trigger_event(
    body: TriggerEventRequest,
    user: User = Depends(get_current_user),
    manager: GamificationEventManager = Depends(get_event_manager),
):
    """Apply a platform event for the calling user."""
    outcome = unwrap(await manager.trigger_event(body.event_type, user.id, body.data))
    xp = outcome["xp"] or {}
    return TriggerEventResponse(
        event=outcome["event"],
        xp_awarded=xp.get("xp_awarded", 0),
        new_level=xp.get("new_level"),
        streak=outcome["streak"],
        badges_earned=outcome["badges_earned"],
    )


@router.get("/gamification/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    manager: GamificationEventManager = Depends(get_event_manager),
):
    """Top users by XP with anonymous names."""
    entries = unwrap(await manager.get_leaderboard(limit, current_user_id=user.id))
    return LeaderboardResponse(
        entries=[LeaderboardEntry.model_validate(e) for e in entries],
        total=len(entries),
    )


# ── Current user ──


@router.get("/users/me/gamification", response_model=GamificationProfileResponse)
async def get_my_gamification(
    user: User = Depends(get_current_user),
    manager: GamificationEventManager = Depends(get_event_manager),
):
    """XP, level, points, badges and recent activity."""
    profile = unwrap(await manager.get_user_profile(user.id))
    return GamificationProfileResponse.model_validate(profile)


@router.get("/users/me/xp/history", response_model=XPHistoryResponse)
async def get_my_xp_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    manager: GamificationEventManager = Depends(get_event_manager),
):
    """Paginated XP transactions, newest first."""
    history = unwrap(await manager.get_xp_history(user.id, page, per_page))
    return XPHistoryResponse.model_validate(history)


@router.get("/users/me/points", response_model=PointsOverviewResponse)
async def get_my_points(
    user: User = Depends(get_current_user),
    manager: GamificationEventManager = Depends(get_event_manager),
):
    """Points balance with recent transactions and usage breakdown."""
    overview = unwrap(await manager.get_points_overview(user.id))
    return PointsOverviewResponse.model_validate(overview)


@router.post("/users/me/points/spend", response_model=SpendResponse)
async def spend_my_points(
    body: SpendRequest,
    user: User = Depends(get_current_user),
    manager: GamificationEventManager = Depends(get_event_manager),
):
    """Charge the caller for a platform action."""
    outcome = unwrap(await manager.spend_for_action(
        user.id, body.spend_type, source_id=body.source_id, metadata=body.metadata,
    ))
    return SpendResponse.model_validate(outcome)
