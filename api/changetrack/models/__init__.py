"""Models package."""
from changetrack.models.base import Base
from changetrack.models.user import User, UserRole
from changetrack.models.application import Application
from changetrack.models.change_request import (
    ChangeRequest,
    ChangeRequestApplication,
    ChangeRequestStatus,
    ChangeType,
    ValidationSide,
    ValidationStatus,
)
from changetrack.models.audit_log import AuditLog

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Application",
    "ChangeRequest",
    "ChangeRequestApplication",
    "ChangeRequestStatus",
    "ChangeType",
    "ValidationSide",
    "ValidationStatus",
    "AuditLog",
]
