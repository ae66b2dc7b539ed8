"""Convenience imports for all schema classes used by the API."""

from .user import (
    RegisterRequest,
    UserLogin,
    UserResponse,
    UserSummary,
    TokenResponse,
)
from .point import PointCreate, PointRead, PointDeleted
from .activity import ActivityRequestCreate, ActivityRequestRead, ReviewRequest
from .child import (
    ChildCreate,
    ChildRead,
    ChildCreated,
    ChildCredential,
    ChildCredentialsList,
    ChildDeleted,
)
from .dashboard import ChildSummary, DashboardResponse

__all__ = [
    "RegisterRequest",
    "UserLogin",
    "UserResponse",
    "UserSummary",
    "TokenResponse",
    "PointCreate",
    "PointRead",
    "PointDeleted",
    "ActivityRequestCreate",
    "ActivityRequestRead",
    "ReviewRequest",
    "ChildCreate",
    "ChildRead",
    "ChildCreated",
    "ChildCredential",
    "ChildCredentialsList",
    "ChildDeleted",
    "ChildSummary",
    "DashboardResponse",
]
