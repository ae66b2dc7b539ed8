"""Routes for managing kid accounts."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from kidpoints import services
from kidpoints.auth import Caller, get_current_caller
from kidpoints.database import get_session
from kidpoints.schemas import (
    ChildCreate,
    ChildCreated,
    ChildCredentialsList,
    ChildDeleted,
    ChildRead,
)

router = APIRouter(prefix="/children", tags=["children"])


@router.get("", response_model=list[ChildRead])
async def list_children(
    db: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
):
    """List kids belonging to the authenticated parent."""
    return await services.list_children(db, caller)


@router.post("", response_model=ChildCreated)
async def create_child(
    data: ChildCreate,
    db: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
):
    """Create a kid with a generated username and password."""
    child, password = await services.create_child(db, caller, data.name)
    return ChildCreated(
        id=child.id,
        name=child.name,
        child_username=child.child_username,
        password=password,
    )


# Declared before "/{child_id}" so the literal path wins.
@router.get("/credentials", response_model=ChildCredentialsList)
async def child_credentials(
    db: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
):
    children = await services.list_child_credentials(db, caller)
    return ChildCredentialsList(children=children)


@router.delete("/{child_id}", response_model=ChildDeleted)
async def delete_child(
    child_id: int,
    db: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
):
    """Delete a kid together with their points and activity requests."""
    await services.delete_child(db, caller, child_id)
    return ChildDeleted()
