"""Application owner routes: the owner's validation queue."""
from typing import List
from fastapi import APIRouter, Depends, Query

from changetrack.core.deps import get_current_user, get_store
from changetrack.core.status_aggregation import compute_record_status
from changetrack.core.store import ValidationRecordStore
from changetrack.models.user import User
from changetrack.schemas.change_request import OwnerAssignmentResponse

router = APIRouter(tags=["application-owner"])


@router.get("/my-applications", response_model=List[OwnerAssignmentResponse])
def list_my_assignments(
    include_inactive: bool = Query(
        False, description="Include completed and cancelled change requests"
    ),
    store: ValidationRecordStore = Depends(get_store),
    current_user: User = Depends(get_current_user)
):
    """
    Validation records for every application the current user owns.

    By default only records on active change requests are returned, ordered
    by the change window start.
    """
    records = store.get_validation_records_for_owner(
        current_user.user_id, active_only=not include_inactive
    )
    return [
        {
            "record_id": r.record_id,
            "change_request_id": r.change_request_id,
            "application_id": r.application_id,
            "pre_status": r.pre_status,
            "post_status": r.post_status,
            "pre_comments": r.pre_comments,
            "post_comments": r.post_comments,
            "pre_attachments": r.pre_attachments or [],
            "post_attachments": r.post_attachments or [],
            "pre_updated_at": r.pre_updated_at,
            "post_updated_at": r.post_updated_at,
            "created_at": r.created_at,
            "effective_status": compute_record_status(r),
            "application": r.application,
            "change_request": r.change_request,
        }
        for r in records
    ]
