"""Row-Level Security (RLS) filters for change request access control."""
from typing import Optional, Set

from changetrack.core.config import settings
from changetrack.core.errors import ForbiddenError
from changetrack.core.roles import is_admin, is_change_manager
from changetrack.models.application import Application
from changetrack.models.change_request import ChangeRequest, ChangeRequestApplication
from changetrack.models.user import User


def can_see_all_change_requests(user: User, admin_sees_all: Optional[bool] = None) -> bool:
    """
    Determine if a user can see every change request without restrictions.

    - Change Manager: always
    - Admin: unless ADMIN_SEES_ALL_CHANGE_REQUESTS is disabled
    - Application Owner: never
    """
    if is_change_manager(user):
        return True
    if is_admin(user):
        if admin_sees_all is None:
            admin_sees_all = settings.ADMIN_SEES_ALL_CHANGE_REQUESTS
        return admin_sees_all
    return False


def change_request_visibility_clause(user: User, admin_sees_all: Optional[bool] = None):
    """
    Return the visibility predicate for change request queries, or None when
    the user sees everything.

    Restricted users see change requests with at least one attached
    application they own.
    """
    if can_see_all_change_requests(user, admin_sees_all):
        return None
    return ChangeRequest.applications.any(
        ChangeRequestApplication.application.has(
            Application.owner_id == user.user_id
        )
    )


def owned_application_ids(change_request: ChangeRequest, user: User) -> Set[int]:
    """IDs of the applications on this change request owned by the user."""
    return {
        record.application_id
        for record in change_request.applications
        if record.application is not None and can_edit_validation_record(record.application, user)
    }


def can_access_change_request(
    change_request: ChangeRequest,
    user: User,
    admin_sees_all: Optional[bool] = None
) -> bool:
    """
    Check if a user can view a specific change request.

    A visible change request is shown in full: owners see every attached
    application's row for context, not only their own.
    """
    if can_see_all_change_requests(user, admin_sees_all):
        return True
    return bool(owned_application_ids(change_request, user))


def ensure_can_access_change_request(
    change_request: ChangeRequest,
    user: User,
    admin_sees_all: Optional[bool] = None
) -> None:
    if not can_access_change_request(change_request, user, admin_sees_all):
        raise ForbiddenError(
            f"Access denied to change request {change_request.change_id}"
        )


def can_edit_validation_record(application: Application, user: User) -> bool:
    """
    Only the application's current owner may record validation outcomes.

    Role does not matter: change managers and admins cannot edit an
    owner's validation status either.
    """
    return application.owner_id is not None and application.owner_id == user.user_id
