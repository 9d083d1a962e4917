"""Role display helpers and capability mappings."""
from __future__ import annotations

from typing import Optional, Dict, TYPE_CHECKING

from changetrack.models.user import UserRole

if TYPE_CHECKING:
    from changetrack.models.user import User


ROLE_DISPLAY: Dict[str, str] = {
    UserRole.CHANGE_MANAGER.value: "Change Manager",
    UserRole.APPLICATION_OWNER.value: "Application Owner",
    UserRole.ADMIN.value: "Admin",
}


def get_role_display(role: str | None, fallback: str | None = None) -> Optional[str]:
    if not role:
        return fallback
    return ROLE_DISPLAY.get(role, fallback)


def is_admin(user: "User") -> bool:
    return user.role == UserRole.ADMIN.value


def is_change_manager(user: "User") -> bool:
    return user.role == UserRole.CHANGE_MANAGER.value


def build_capabilities(role: str | None) -> dict:
    return {
        "is_admin": role == UserRole.ADMIN.value,
        "is_change_manager": role == UserRole.CHANGE_MANAGER.value,
        "is_application_owner": role == UserRole.APPLICATION_OWNER.value,
        "can_manage_applications": role == UserRole.ADMIN.value,
        "can_manage_users": role == UserRole.ADMIN.value,
        "can_create_change_requests": role == UserRole.CHANGE_MANAGER.value,
        "can_view_change_manager_stats": role in {
            UserRole.CHANGE_MANAGER.value,
            UserRole.ADMIN.value
        },
        # Ownership is checked per application; any role may own one
        "can_record_validations": True,
    }
