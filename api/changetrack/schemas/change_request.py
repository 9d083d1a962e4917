"""Change request and validation record schemas."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from changetrack.models.change_request import (
    ChangeRequestStatus,
    ChangeType,
    ValidationSide,
    ValidationStatus,
)
from changetrack.schemas.application import ApplicationBrief
from changetrack.schemas.user import UserBrief


class ChangeRequestCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    change_type: ChangeType
    start_time: datetime
    end_time: datetime
    application_ids: List[int] = []


class AttachApplicationsRequest(BaseModel):
    application_ids: List[int] = Field(..., min_length=1)


class LifecycleStatusUpdate(BaseModel):
    status: ChangeRequestStatus


class ValidationUpdate(BaseModel):
    """Owner's pre-change or post-change outcome for one application."""
    side: ValidationSide
    status: ValidationStatus
    comments: Optional[str] = None
    attachments: Optional[List[str]] = None


class ValidationRecordResponse(BaseModel):
    record_id: int
    change_request_id: int
    application_id: int
    application: Optional[ApplicationBrief] = None
    pre_status: str
    post_status: str
    pre_comments: Optional[str] = None
    post_comments: Optional[str] = None
    pre_attachments: List[str] = []
    post_attachments: List[str] = []
    pre_updated_at: Optional[datetime] = None
    post_updated_at: Optional[datetime] = None
    created_at: datetime
    effective_status: str
    can_edit: bool = False


class ValidationSummaryResponse(BaseModel):
    side: str
    total: int
    completed: int
    not_applicable: int
    applicable: int
    status: str
    label: str


class ChangeRequestSummary(BaseModel):
    """
    List item. `status` is the lifecycle flag; `validation_status` is the
    aggregate of the attached validation records.
    """
    change_request_id: int
    change_id: str
    title: str
    description: Optional[str] = None
    change_type: str
    status: str
    start_time: datetime
    end_time: datetime
    manager_id: int
    manager: Optional[UserBrief] = None
    created_at: datetime
    updated_at: datetime
    validation_status: str
    validation_status_label: str
    pre_completion_ratio: float
    post_completion_ratio: float
    application_count: int
    applications: List[ValidationRecordResponse] = []


class ChangeRequestDetail(ChangeRequestSummary):
    pre_summary: ValidationSummaryResponse
    post_summary: ValidationSummaryResponse


class ChangeRequestBrief(BaseModel):
    change_request_id: int
    change_id: str
    title: str
    description: Optional[str] = None
    change_type: str
    status: str
    start_time: datetime
    end_time: datetime
    manager_id: int
    manager: Optional[UserBrief] = None

    class Config:
        from_attributes = True


class OwnerAssignmentResponse(BaseModel):
    """A validation record as seen from the owning application owner's queue."""
    record_id: int
    change_request_id: int
    application_id: int
    pre_status: str
    post_status: str
    pre_comments: Optional[str] = None
    post_comments: Optional[str] = None
    pre_attachments: List[str] = []
    post_attachments: List[str] = []
    pre_updated_at: Optional[datetime] = None
    post_updated_at: Optional[datetime] = None
    created_at: datetime
    effective_status: str
    application: ApplicationBrief
    change_request: ChangeRequestBrief
