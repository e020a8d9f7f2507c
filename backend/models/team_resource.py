"""
Team resource model - which client records a team can see.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from models.database import Base


class TeamResource(Base):
    """Assignment of a resource to a team."""

    __tablename__ = "team_resources"
    __table_args__ = (
        Index("idx_team_resources_resource", "resource_id"),
    )

    team_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True
    )
    resource_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("resources.id", ondelete="CASCADE"), primary_key=True
    )
    assigned_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=True
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        from config import to_iso8601

        return {
            "team_id": str(self.team_id),
            "resource_id": str(self.resource_id),
            "assigned_at": to_iso8601(self.assigned_at),
        }
