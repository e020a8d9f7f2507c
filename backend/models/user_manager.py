"""
Manager edge model.

A row (user_id, manager_id) means manager_id manages user_id. A user may have
several managers. Rows are only written by the assign/remove manager actions,
which keep the graph acyclic and within the configured depth.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from models.database import Base

MANAGER_TYPES: tuple[str, ...] = ("line_manager", "functional", "dotted_line")


class UserManager(Base):
    """Directed "manages" edge between two users."""

    __tablename__ = "user_managers"
    __table_args__ = (
        CheckConstraint("user_id <> manager_id", name="ck_user_managers_no_self"),
        Index("idx_user_managers_manager", "manager_id"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    manager_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    manager_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="line_manager"
    )  # 'line_manager', 'functional', 'dotted_line'
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=True
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        from config import to_iso8601

        return {
            "user_id": str(self.user_id),
            "manager_id": str(self.manager_id),
            "manager_type": self.manager_type,
            "created_at": to_iso8601(self.created_at),
        }
