"""
User model for relationship managers.

Users are the nodes of the management hierarchy. Display fields may change;
the id never does once a manager edge or team membership references it.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from models.database import Base

USER_ROLES: tuple[str, ...] = ("RM", "Senior RM", "Head of RM")


class User(Base):
    """A relationship manager who can hold team memberships and manage others."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(50), nullable=False, default="RM"
    )  # 'RM', 'Senior RM', 'Head of RM'
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=True
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        from config import to_iso8601

        return {
            "id": str(self.id),
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "created_at": to_iso8601(self.created_at),
        }
