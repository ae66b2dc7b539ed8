from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from kidpoints.schemas import UserResponse
from kidpoints.database import get_session
from kidpoints.crud import get_user
from kidpoints.auth import Caller, get_current_caller

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def read_current_user(
    db: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
):
    """Return details for the authenticated account."""
    user = await get_user(db, caller.id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user
