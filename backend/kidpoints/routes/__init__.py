"""Aggregate import for all API route modules."""

from . import (
    auth,
    users,
    children,
    points,
    activity_requests,
)

__all__ = [
    "auth",
    "users",
    "children",
    "points",
    "activity_requests",
]
