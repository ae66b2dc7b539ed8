"""Schemas for activity requests and their review."""

from typing import Optional
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field, StrictInt

from kidpoints.models import ActivityStatus
from .point import PointRead
from .user import UserSummary


class ActivityRequestCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    activity: str = Field(min_length=1)
    description: str = Field(min_length=1)
    activity_date: date = Field(alias="activityDate")
    child_id: Optional[int] = Field(default=None, alias="childId")


class ActivityRequestRead(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    activity: str
    description: str
    activity_date: date
    status: ActivityStatus
    requested_by_id: int
    reviewed_by_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    point_id: Optional[int] = None
    created_at: datetime
    requested_by: Optional[UserSummary] = None
    reviewed_by: Optional[UserSummary] = None
    point: Optional[PointRead] = None


class ReviewRequest(BaseModel):
    status: ActivityStatus
    points: Optional[StrictInt] = None
