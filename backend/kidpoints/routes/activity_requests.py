"""Endpoints for submitting and reviewing activity requests."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from kidpoints import services
from kidpoints.auth import Caller, get_current_caller
from kidpoints.database import get_session
from kidpoints.schemas import ActivityRequestCreate, ActivityRequestRead, ReviewRequest

router = APIRouter(prefix="/activity-requests", tags=["activity-requests"])


@router.get("", response_model=list[ActivityRequestRead])
async def list_requests(
    db: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
):
    """Parents see their kids' pending requests; kids see their own history."""
    return await services.list_activity_requests(db, caller)


@router.post("", response_model=ActivityRequestRead)
async def submit_request(
    data: ActivityRequestCreate,
    db: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
):
    return await services.submit_activity(
        db,
        caller,
        data.activity,
        data.description,
        data.activity_date,
        child_id=data.child_id,
    )


@router.post("/{request_id}/review", response_model=ActivityRequestRead)
async def review_request(
    request_id: int,
    data: ReviewRequest,
    db: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
):
    return await services.review_activity(
        db, caller, request_id, data.status, points=data.points
    )
