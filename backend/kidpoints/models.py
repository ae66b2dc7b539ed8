"""Database models used by Kid Points.

The models are defined with SQLModel (built on SQLAlchemy and Pydantic)
and represent family accounts, the point ledger and the activity requests
children submit for review.  Comments are kept concise to avoid
distracting from the field definitions.
"""

from enum import Enum
from typing import Optional
from datetime import datetime, date, timezone
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Account role; every account is either a parent or a kid."""

    PARENT = "PARENT"
    KID = "KID"


class ActivityStatus(str, Enum):
    """Lifecycle of an activity request. Only PENDING can change."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class User(SQLModel, table=True):
    """Parent or child account."""

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    role: Role
    email: Optional[str] = Field(default=None, unique=True, index=True)
    child_username: Optional[str] = Field(default=None, unique=True, index=True)
    password_hash: str
    # Fernet token of a kid's password so the owning parent can look it up.
    secret_token: Optional[str] = None
    parent_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    avatar: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Point(SQLModel, table=True):
    """Immutable ledger entry; negative amounts are penalties."""

    id: Optional[int] = Field(default=None, primary_key=True)
    amount: int
    description: Optional[str] = None
    user_id: int = Field(foreign_key="user.id", index=True)
    given_by_id: int = Field(foreign_key="user.id")
    created_at: datetime = Field(default_factory=utcnow)


class ActivityRequest(SQLModel, table=True):
    """Activity a child claims credit for, awaiting parent review."""

    __tablename__ = "activity_request"

    id: Optional[int] = Field(default=None, primary_key=True)
    activity: str
    description: str
    activity_date: date
    status: ActivityStatus = ActivityStatus.PENDING
    requested_by_id: int = Field(foreign_key="user.id", index=True)
    reviewed_by_id: Optional[int] = Field(default=None, foreign_key="user.id")
    reviewed_at: Optional[datetime] = None
    point_id: Optional[int] = Field(default=None, foreign_key="point.id")
    created_at: datetime = Field(default_factory=utcnow)
