"""Application catalog model."""
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from changetrack.models.base import Base
from changetrack.core.time import utc_now

if TYPE_CHECKING:
    from changetrack.models.user import User
    from changetrack.models.change_request import ChangeRequestApplication


class Application(Base):
    """
    An application that can be affected by a change request.

    Each application has at most one owner (the SPOC), who is the only user
    allowed to record validation outcomes for it.
    """
    __tablename__ = "applications"

    application_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    owner_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.user_id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Application owner / single point of contact"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now, nullable=False
    )

    owner: Mapped[Optional["User"]] = relationship(
        "User", back_populates="owned_applications", foreign_keys=[owner_id]
    )
    validation_records: Mapped[List["ChangeRequestApplication"]] = relationship(
        "ChangeRequestApplication", back_populates="application"
    )
