"""Dashboard statistics and analytics routes."""
from fastapi import APIRouter, Depends, HTTPException, Query, status

from changetrack.core.deps import get_current_user, get_query_composer, get_store
from changetrack.core.query_composer import ChangeRequestQueryComposer
from changetrack.core.roles import is_admin, is_change_manager
from changetrack.core.stats import (
    compute_analytics,
    compute_application_owner_stats,
    compute_change_manager_stats,
)
from changetrack.core.store import ValidationRecordStore
from changetrack.models.user import User
from changetrack.schemas.stats import (
    AnalyticsResponse,
    ApplicationOwnerStats,
    ChangeManagerStats,
)

router = APIRouter(tags=["stats"])


def _require_manager_or_admin(user: User) -> None:
    if not (is_change_manager(user) or is_admin(user)):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied"
        )


@router.get("/stats/change-manager", response_model=ChangeManagerStats)
def get_change_manager_stats(
    composer: ChangeRequestQueryComposer = Depends(get_query_composer),
    current_user: User = Depends(get_current_user)
):
    """Validation status counts across active change requests."""
    _require_manager_or_admin(current_user)
    return compute_change_manager_stats(composer, current_user)


@router.get("/stats/application-owner", response_model=ApplicationOwnerStats)
def get_application_owner_stats(
    store: ValidationRecordStore = Depends(get_store),
    current_user: User = Depends(get_current_user)
):
    """Pending, completed-today and total counts for the current owner's rows."""
    return compute_application_owner_stats(store, current_user.user_id)


@router.get("/analytics", response_model=AnalyticsResponse)
def get_analytics(
    range_code: str = Query("30d", alias="range", description="One of 7d, 30d, 90d, 1y"),
    composer: ChangeRequestQueryComposer = Depends(get_query_composer),
    current_user: User = Depends(get_current_user)
):
    """Analytics over change requests created within the range."""
    _require_manager_or_admin(current_user)
    return compute_analytics(composer, current_user, range_code)
