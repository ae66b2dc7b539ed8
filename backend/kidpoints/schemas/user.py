# kidpoints/schemas/user.py

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from kidpoints.models import Role


class RegisterRequest(BaseModel):
    """Body of ``POST /register`` for both parents and kids."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    password: str = Field(min_length=1)
    role: Role
    email: Optional[EmailStr] = None
    child_username: Optional[str] = Field(default=None, alias="childUsername")
    parent_id: Optional[int] = Field(default=None, alias="parentId")


class UserLogin(BaseModel):
    """JSON login: ``login`` is a parent email or a kid username."""

    login: str = Field(validation_alias=AliasChoices("login", "email", "username"))
    password: str


class UserResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    name: str
    role: Role
    email: Optional[str] = None
    child_username: Optional[str] = None
    parent_id: Optional[int] = None
    avatar: Optional[str] = None
    created_at: Optional[datetime] = None


class UserSummary(BaseModel):
    """Short account reference embedded in other responses."""

    model_config = {"from_attributes": True}

    id: int
    name: str
    avatar: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: Role
