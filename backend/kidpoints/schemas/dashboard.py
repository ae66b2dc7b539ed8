"""Totals shown on the landing page for parents and kids."""

from typing import Optional
from pydantic import BaseModel

from kidpoints.models import Role
from .point import PointRead


class ChildSummary(BaseModel):
    id: int
    name: str
    child_username: Optional[str] = None
    avatar: Optional[str] = None
    total_points: int
    weekly_points: int
    recent_points: list[PointRead]


class DashboardResponse(BaseModel):
    id: int
    name: str
    role: Role
    total_points: int
    weekly_points: int
    recent_points: list[PointRead] = []
    children: list[ChildSummary] = []
