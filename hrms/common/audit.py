"""Audit trail model and async helper for recording entity changes."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from fastapi import Request
from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import INET, JSONB, UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from hrms.database import Base


# ── Immutable audit-trail table ─────────────────────────────────────

class AuditTrail(Base):
    """Immutable log of every significant data change."""

    __tablename__ = "audit_trail"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False,
    )
    old_values: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    new_values: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(INET, nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_audit_trail_actor_id", "actor_id"),
        Index("ix_audit_trail_entity", "entity_type", "entity_id"),
        Index("ix_audit_trail_created_at", "created_at"),
        Index("ix_audit_trail_action", "action"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditTrail {self.action} {self.entity_type}"
            f"/{self.entity_id} by {self.actor_id}>"
        )


# ── Helpers ─────────────────────────────────────────────────────────

def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    return value


def snapshot(obj: Any, fields: list[str]) -> dict[str, Any]:
    """Capture *fields* of an ORM object as a JSON-safe dict."""
    return {f: _jsonable(getattr(obj, f, None)) for f in fields}


def client_info(request: Optional[Request]) -> dict[str, Optional[str]]:
    """Extract ``ip_address`` / ``user_agent`` kwargs from a request."""
    if request is None:
        return {"ip_address": None, "user_agent": None}
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


async def create_audit_entry(
    session: AsyncSession,
    *,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID,
    actor_id: Optional[uuid.UUID] = None,
    old_values: Optional[dict[str, Any]] = None,
    new_values: Optional[dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AuditTrail:
    """
    Create and flush an audit-trail entry.

    Args:
        session: Async SQLAlchemy session.
        action: create | update | delete | clock_in | approve | reject | etc.
        entity_type: e.g. "employee", "leave_request".
        entity_id: UUID of the affected entity.
        actor_id: UUID of the user performing the action.
        old_values: Previous state (for updates/deletes).
        new_values: New state (for creates/updates).
        ip_address: Client IP.
        user_agent: Client user-agent string.
    """
    entry = AuditTrail(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        old_values=_jsonable(old_values) if old_values is not None else None,
        new_values=_jsonable(new_values) if new_values is not None else None,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    session.add(entry)
    await session.flush()
    return entry
