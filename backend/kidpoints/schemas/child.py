from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ChildCreate(BaseModel):
    name: str = Field(min_length=1)


class ChildRead(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    name: str
    child_username: Optional[str] = None
    avatar: Optional[str] = None
    created_at: datetime
    total_points: int = 0


class ChildCreated(BaseModel):
    """Returned once, right after the credentials are generated."""

    id: int
    name: str
    child_username: str
    password: str


class ChildCredential(BaseModel):
    id: int
    name: str
    child_username: Optional[str] = None
    password: Optional[str] = None
    created_at: datetime


class ChildCredentialsList(BaseModel):
    children: list[ChildCredential]


class ChildDeleted(BaseModel):
    success: bool = True
