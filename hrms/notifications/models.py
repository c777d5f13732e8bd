"""Notifications ORM model."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.common.constants import NotificationType
from hrms.database import Base, enum_type

if TYPE_CHECKING:
    from hrms.core_hr.models import Employee


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    recipient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[NotificationType] = mapped_column(
        enum_type(NotificationType, "notification_type"),
        default=NotificationType.info,
        nullable=False,
    )
    title: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    message: Mapped[str] = mapped_column(sa.Text, nullable=False)
    action_url: Mapped[Optional[str]] = mapped_column(sa.String(500))
    entity_type: Mapped[Optional[str]] = mapped_column(sa.String(50))
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    is_read: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        sa.Index("ix_notifications_recipient_read", "recipient_id", "is_read"),
    )

    # Relationships
    recipient: Mapped["Employee"] = relationship()
