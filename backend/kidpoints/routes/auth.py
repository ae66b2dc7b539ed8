# kidpoints/routes/auth.py
"""Authentication endpoints: login, token generation and registration."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from kidpoints import services
from kidpoints.auth import Caller, create_token_for_user, get_optional_caller
from kidpoints.database import get_session
from kidpoints.exceptions import AuthorizationError
from kidpoints.models import Role
from kidpoints.schemas import RegisterRequest, TokenResponse, UserLogin, UserResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["auth"])

INVALID_CREDENTIALS = {
    "code": "auth_invalid_credentials",
    "message": "Invalid login or password",
}


@router.post("/token")
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_session),
):
    """OAuth2 password flow used by interactive docs and external clients."""

    user = await services.authenticate(db, form_data.username, form_data.password)
    if not user:
        logger.warning("Failed OAuth login for %s", form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS
        )
    logger.info("User %s logged in via OAuth form", user.id)
    return {"access_token": create_token_for_user(user), "token_type": "bearer"}


@router.post("/login", response_model=TokenResponse)
async def login(user_in: UserLogin, db: AsyncSession = Depends(get_session)):
    """JSON-based login used by the frontend.

    Parents log in with their email, kids with their generated username.
    """

    user = await services.authenticate(db, user_in.login, user_in.password)
    if not user:
        logger.warning("Failed login for %s", user_in.login)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS
        )
    logger.info("User %s logged in", user.id)
    return TokenResponse(access_token=create_token_for_user(user), role=user.role)


@router.post("/register", response_model=UserResponse)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_session),
    caller: Caller | None = Depends(get_optional_caller),
):
    """Register a parent account, or a kid for the logged-in parent."""

    if data.role == Role.PARENT:
        return await services.register_parent(db, data.name, data.email, data.password)

    if caller is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if caller.role != Role.PARENT:
        raise AuthorizationError("Only parents can add children", code="parent_required")
    parent_id = data.parent_id if data.parent_id is not None else caller.id
    if parent_id != caller.id:
        raise AuthorizationError("Children can only be added to your own account")
    return await services.register_child(
        db, data.name, parent_id, data.child_username, data.password
    )
