"""Application catalog schemas."""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from changetrack.schemas.user import UserBrief


class ApplicationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    owner_id: Optional[int] = None


class ApplicationOwnerUpdate(BaseModel):
    """Reassign (or clear) an application's owner."""
    owner_id: Optional[int] = None


class ApplicationBrief(BaseModel):
    application_id: int
    name: str
    owner_id: Optional[int] = None
    owner: Optional[UserBrief] = None

    class Config:
        from_attributes = True


class ApplicationResponse(ApplicationBrief):
    description: Optional[str] = None
    created_at: datetime
