"""User model."""
import enum
from datetime import datetime
from typing import List, TYPE_CHECKING
from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from changetrack.models.base import Base
from changetrack.core.time import utc_now

if TYPE_CHECKING:
    from changetrack.models.application import Application
    from changetrack.models.change_request import ChangeRequest


class UserRole(str, enum.Enum):
    """User roles. Exactly one per user, fixed at login."""
    CHANGE_MANAGER = "change_manager"
    APPLICATION_OWNER = "application_owner"
    ADMIN = "admin"


class User(Base):
    """User model."""
    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(50), nullable=False, default=UserRole.APPLICATION_OWNER.value)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    # Applications this user is the SPOC for
    owned_applications: Mapped[List["Application"]] = relationship(
        "Application", back_populates="owner"
    )
    managed_change_requests: Mapped[List["ChangeRequest"]] = relationship(
        "ChangeRequest", back_populates="manager"
    )
