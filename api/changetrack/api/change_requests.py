"""Change request routes."""
import logging
from datetime import date
from typing import List, Optional, Set
from fastapi import APIRouter, Depends, HTTPException, Query, status

from changetrack.core.deps import get_current_user, get_query_composer, get_store
from changetrack.core.errors import ForbiddenError
from changetrack.core.query_composer import (
    AggregatedChangeRequest,
    ChangeRequestFilters,
    ChangeRequestQueryComposer,
)
from changetrack.core.roles import is_change_manager
from changetrack.core.status_aggregation import (
    ValidationSummary,
    compute_record_status,
    get_status_label,
)
from changetrack.core.store import ValidationRecordStore
from changetrack.models.change_request import ChangeRequestApplication
from changetrack.models.user import User
from changetrack.schemas.change_request import (
    AttachApplicationsRequest,
    ChangeRequestCreate,
    ChangeRequestDetail,
    ChangeRequestSummary,
    LifecycleStatusUpdate,
    ValidationRecordResponse,
    ValidationUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/change-requests", tags=["change-requests"])


def _require_change_manager(user: User, action: str) -> None:
    if not is_change_manager(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only change managers can {action}"
        )


def serialize_record(record: ChangeRequestApplication, editable_ids: Set[int]) -> dict:
    application = record.application
    return {
        "record_id": record.record_id,
        "change_request_id": record.change_request_id,
        "application_id": record.application_id,
        "application": application,
        "pre_status": record.pre_status,
        "post_status": record.post_status,
        "pre_comments": record.pre_comments,
        "post_comments": record.post_comments,
        "pre_attachments": record.pre_attachments or [],
        "post_attachments": record.post_attachments or [],
        "pre_updated_at": record.pre_updated_at,
        "post_updated_at": record.post_updated_at,
        "created_at": record.created_at,
        "effective_status": compute_record_status(record),
        "can_edit": record.application_id in editable_ids,
    }


def serialize_summary(summary: ValidationSummary) -> dict:
    return {
        "side": summary.side,
        "total": summary.total,
        "completed": summary.completed,
        "not_applicable": summary.not_applicable,
        "applicable": summary.applicable,
        "status": summary.status,
        "label": summary.label,
    }


def serialize_change_request(result: AggregatedChangeRequest, detail: bool = False) -> dict:
    cr = result.change_request
    data = {
        "change_request_id": cr.change_request_id,
        "change_id": cr.change_id,
        "title": cr.title,
        "description": cr.description,
        "change_type": cr.change_type,
        "status": cr.status,
        "start_time": cr.start_time,
        "end_time": cr.end_time,
        "manager_id": cr.manager_id,
        "manager": cr.manager,
        "created_at": cr.created_at,
        "updated_at": cr.updated_at,
        "validation_status": result.validation_status,
        "validation_status_label": get_status_label(result.validation_status),
        "pre_completion_ratio": result.pre_completion_ratio,
        "post_completion_ratio": result.post_completion_ratio,
        "application_count": len(cr.applications),
        "applications": [
            serialize_record(record, result.editable_application_ids)
            for record in cr.applications
        ],
    }
    if detail:
        data["pre_summary"] = serialize_summary(result.pre_summary)
        data["post_summary"] = serialize_summary(result.post_summary)
    return data


@router.get("", response_model=List[ChangeRequestSummary])
def list_change_requests(
    search: Optional[str] = Query(None, description="Search change id, title or description"),
    change_type: Optional[str] = Query(
        None, alias="type", description="Change type: P1, P2, Emergency, Standard"
    ),
    status: Optional[str] = Query(
        None,
        description="Validation status (no_applications, pending, in_progress, completed); "
                    "active and cancelled filter the lifecycle status"
    ),
    lifecycle_status: Optional[str] = Query(
        None, description="Lifecycle status: active, completed, cancelled"
    ),
    application: Optional[str] = Query(None, description="Attached application name contains"),
    date_from: Optional[date] = Query(None, description="Start time on or after this date"),
    date_to: Optional[date] = Query(None, description="Start time on or before this date"),
    managed_by_me: bool = Query(False, description="Only change requests I manage"),
    composer: ChangeRequestQueryComposer = Depends(get_query_composer),
    current_user: User = Depends(get_current_user)
):
    """
    List change requests visible to the current user.

    Change managers see every change request; application owners see those
    touching at least one application they own.
    """
    filters = ChangeRequestFilters(
        search=search,
        change_type=change_type,
        status=status,
        lifecycle_status=lifecycle_status,
        application=application,
        date_from=date_from,
        date_to=date_to,
        managed_by_me=managed_by_me,
    )
    results = composer.list_change_requests(current_user, filters)
    return [serialize_change_request(r) for r in results]


@router.get("/{change_request_id}", response_model=ChangeRequestDetail)
def get_change_request(
    change_request_id: int,
    composer: ChangeRequestQueryComposer = Depends(get_query_composer),
    current_user: User = Depends(get_current_user)
):
    """Get a change request with every attached application's validation row."""
    result = composer.get_change_request(current_user, change_request_id)
    return serialize_change_request(result, detail=True)


@router.post("", response_model=ChangeRequestDetail, status_code=status.HTTP_201_CREATED)
def create_change_request(
    data: ChangeRequestCreate,
    store: ValidationRecordStore = Depends(get_store),
    composer: ChangeRequestQueryComposer = Depends(get_query_composer),
    current_user: User = Depends(get_current_user)
):
    """Create a change request (change managers only)."""
    _require_change_manager(current_user, "create change requests")
    change_request = store.create_change_request(
        manager_id=current_user.user_id,
        title=data.title,
        description=data.description,
        change_type=data.change_type.value,
        start_time=data.start_time,
        end_time=data.end_time,
        application_ids=data.application_ids,
    )
    logger.info(
        "Change request %s created by user %s with %d applications",
        change_request.change_id, current_user.user_id, len(data.application_ids)
    )
    return serialize_change_request(
        composer.get_change_request(current_user, change_request.change_request_id),
        detail=True
    )


@router.post("/{change_request_id}/applications", response_model=ChangeRequestDetail)
def attach_applications(
    change_request_id: int,
    data: AttachApplicationsRequest,
    store: ValidationRecordStore = Depends(get_store),
    composer: ChangeRequestQueryComposer = Depends(get_query_composer),
    current_user: User = Depends(get_current_user)
):
    """Attach applications to a change request (change managers only)."""
    _require_change_manager(current_user, "attach applications")
    store.attach_applications(change_request_id, data.application_ids, current_user.user_id)
    return serialize_change_request(
        composer.get_change_request(current_user, change_request_id), detail=True
    )


@router.patch("/{change_request_id}/status", response_model=ChangeRequestDetail)
def update_lifecycle_status(
    change_request_id: int,
    data: LifecycleStatusUpdate,
    store: ValidationRecordStore = Depends(get_store),
    composer: ChangeRequestQueryComposer = Depends(get_query_composer),
    current_user: User = Depends(get_current_user)
):
    """Set the lifecycle status (change managers only)."""
    _require_change_manager(current_user, "change the lifecycle status")
    store.update_lifecycle_status(change_request_id, data.status.value, current_user.user_id)
    return serialize_change_request(
        composer.get_change_request(current_user, change_request_id), detail=True
    )


@router.patch(
    "/{change_request_id}/applications/{application_id}/validation",
    response_model=ValidationRecordResponse
)
def update_validation(
    change_request_id: int,
    application_id: int,
    data: ValidationUpdate,
    store: ValidationRecordStore = Depends(get_store),
    current_user: User = Depends(get_current_user)
):
    """Record a pre-change or post-change outcome. Only the application's owner may do this."""
    try:
        record = store.update_validation_record(
            change_request_id=change_request_id,
            application_id=application_id,
            caller_id=current_user.user_id,
            side=data.side.value,
            status=data.status.value,
            comments=data.comments,
            attachments=data.attachments,
        )
    except ForbiddenError:
        logger.warning(
            "User %s denied validation update on change request %s application %s",
            current_user.user_id, change_request_id, application_id
        )
        raise

    return serialize_record(record, {record.application_id})
