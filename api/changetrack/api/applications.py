"""Application catalog routes."""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from changetrack.core.deps import get_current_user, get_store
from changetrack.core.roles import is_admin
from changetrack.core.store import ValidationRecordStore
from changetrack.models.user import User
from changetrack.schemas.application import (
    ApplicationCreate,
    ApplicationOwnerUpdate,
    ApplicationResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["applications"])


def _require_admin(user: User, action: str) -> None:
    if not is_admin(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only admins can {action}"
        )


@router.get("", response_model=List[ApplicationResponse])
def list_applications(
    search: Optional[str] = Query(None, description="Search by name or description"),
    owner_id: Optional[int] = Query(None, description="Filter by owner (SPOC)"),
    store: ValidationRecordStore = Depends(get_store),
    current_user: User = Depends(get_current_user)
):
    """List the application catalog."""
    return store.list_applications(search=search, owner_id=owner_id)


@router.get("/{application_id}", response_model=ApplicationResponse)
def get_application(
    application_id: int,
    store: ValidationRecordStore = Depends(get_store),
    current_user: User = Depends(get_current_user)
):
    """Get a single application by ID."""
    return store.require_application(application_id)


@router.post("", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
def create_application(
    data: ApplicationCreate,
    store: ValidationRecordStore = Depends(get_store),
    current_user: User = Depends(get_current_user)
):
    """Create an application (admin only)."""
    _require_admin(current_user, "create applications")
    application = store.create_application(
        name=data.name,
        description=data.description,
        owner_id=data.owner_id,
        created_by=current_user.user_id
    )
    logger.info("Application %s created by user %s", application.application_id, current_user.user_id)
    return application


@router.patch("/{application_id}/owner", response_model=ApplicationResponse)
def reassign_owner(
    application_id: int,
    data: ApplicationOwnerUpdate,
    store: ValidationRecordStore = Depends(get_store),
    current_user: User = Depends(get_current_user)
):
    """Reassign an application's owner (admin only)."""
    _require_admin(current_user, "reassign application owners")
    application = store.reassign_application_owner(
        application_id, data.owner_id, current_user.user_id
    )
    logger.info(
        "Application %s owner set to %s by user %s",
        application_id, data.owner_id, current_user.user_id
    )
    return application
