"""
Team model - groups of relationship managers that share client records.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from models.database import Base


class Team(Base):
    """A team whose members (direct and manager-derived) see its resources."""

    __tablename__ = "teams"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Read by the client auto-assignment job, never by the access engine
    auto_assign_clients: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=True
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        from config import to_iso8601

        return {
            "id": str(self.id),
            "name": self.name,
            "auto_assign_clients": self.auto_assign_clients,
            "created_at": to_iso8601(self.created_at),
        }
