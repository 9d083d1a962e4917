"""Change request and per-application validation record models."""
import enum
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING
from sqlalchemy import (
    String, Integer, Text, DateTime, ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from changetrack.models.base import Base
from changetrack.core.time import utc_now

if TYPE_CHECKING:
    from changetrack.models.user import User
    from changetrack.models.application import Application


class ChangeType(str, enum.Enum):
    """Change request types."""
    P1 = "P1"
    P2 = "P2"
    EMERGENCY = "Emergency"
    STANDARD = "Standard"


class ChangeRequestStatus(str, enum.Enum):
    """Coarse lifecycle flag, independent of validation progress."""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ValidationStatus(str, enum.Enum):
    """Status of one side (pre or post) of an application's validation."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    NOT_APPLICABLE = "not_applicable"
    # Terminal, never counts toward completion
    FAILED = "failed"


class ValidationSide(str, enum.Enum):
    PRE = "pre"
    POST = "post"


class ChangeRequest(Base):
    """A planned change affecting one or more applications."""
    __tablename__ = "change_requests"

    change_request_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    change_id: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False,
        comment="Human readable code, e.g. CR-2024-001234"
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    change_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ChangeRequestStatus.ACTIVE.value,
        comment="Lifecycle status: active, completed, cancelled"
    )
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    manager_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, onupdate=utc_now, nullable=False
    )

    manager: Mapped["User"] = relationship(
        "User", back_populates="managed_change_requests", foreign_keys=[manager_id]
    )
    applications: Mapped[List["ChangeRequestApplication"]] = relationship(
        "ChangeRequestApplication",
        back_populates="change_request",
        cascade="all, delete-orphan",
        order_by="ChangeRequestApplication.record_id"
    )


class ChangeRequestApplication(Base):
    """
    Validation record for one application attached to a change request.

    Holds the pre-change and post-change outcome recorded by the
    application's owner. Exactly one row exists per (change request,
    application) pair.
    """
    __tablename__ = "change_request_applications"
    __table_args__ = (
        UniqueConstraint(
            "change_request_id", "application_id",
            name="uq_change_request_application"
        ),
    )

    record_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    change_request_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("change_requests.change_request_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    application_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("applications.application_id"),
        nullable=False,
        index=True
    )
    pre_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ValidationStatus.PENDING.value
    )
    post_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ValidationStatus.PENDING.value
    )
    pre_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    post_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pre_attachments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    post_attachments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    pre_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    post_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, nullable=False
    )

    change_request: Mapped["ChangeRequest"] = relationship(
        "ChangeRequest", back_populates="applications"
    )
    application: Mapped["Application"] = relationship(
        "Application", back_populates="validation_records"
    )
