"""Endpoints for awarding, listing and removing points."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from kidpoints import services
from kidpoints.auth import Caller, get_current_caller
from kidpoints.database import get_session
from kidpoints.schemas import DashboardResponse, PointCreate, PointDeleted, PointRead

router = APIRouter(tags=["points"])


@router.get("/points", response_model=list[PointRead])
async def list_points(
    user_id: int | None = Query(default=None, alias="userId"),
    db: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
):
    return await services.list_points(db, caller, user_id)


@router.post("/points", response_model=PointRead)
async def award_points(
    data: PointCreate,
    db: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
):
    """Give points to a kid; a negative amount records a penalty."""
    return await services.award_points(
        db, caller, data.user_id, data.amount, data.description
    )


@router.delete("/points", response_model=PointDeleted)
async def revoke_points(
    point_id: int = Query(alias="id"),
    db: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
):
    await services.revoke_points(db, caller, point_id)
    return PointDeleted()


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    db: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
):
    """Point totals for the landing page."""
    return await services.build_dashboard(db, caller)
