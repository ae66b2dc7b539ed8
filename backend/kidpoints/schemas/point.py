"""Point ledger request and response models."""

from typing import Optional, Union
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt

from .user import UserSummary


class PointCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    # Whole-number checks happen in the service so 2.0 is still accepted.
    amount: Union[StrictInt, StrictFloat]
    description: Optional[str] = None


class PointRead(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    amount: int
    description: Optional[str] = None
    user_id: int
    given_by_id: int
    created_at: datetime
    user: Optional[UserSummary] = None
    given_by: Optional[UserSummary] = None


class PointDeleted(BaseModel):
    success: bool = True
