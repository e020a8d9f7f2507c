"""
Team membership model - the materialized "who has access and why" table.

One row per (team, user). A direct row is an explicit membership. A manager
row exists because the holder manages, directly or transitively, a member of
the team; granted_via names the immediate subordinate through which that
access was derived. Rows are only written by the access propagation engine.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from models.database import Base

ACCESS_DIRECT = "direct"
ACCESS_MANAGER = "manager"


class TeamMember(Base):
    """A user's access to a team, direct or manager-derived."""

    __tablename__ = "team_members"
    __table_args__ = (
        CheckConstraint(
            "(access_type = 'direct' AND granted_via IS NULL) OR "
            "(access_type = 'manager' AND granted_via IS NOT NULL)",
            name="ck_team_members_granted_via",
        ),
        Index("idx_team_members_user", "user_id"),
        Index("idx_team_members_granted_via", "team_id", "granted_via"),
    )

    team_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    access_type: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # 'direct', 'manager'
    granted_via: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=True
    )  # anchors must be removed through the engine before the user is deleted
    joined_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=True
    )

    @property
    def is_direct(self) -> bool:
        return self.access_type == ACCESS_DIRECT

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        from config import to_iso8601

        return {
            "team_id": str(self.team_id),
            "user_id": str(self.user_id),
            "access_type": self.access_type,
            "granted_via": str(self.granted_via) if self.granted_via else None,
            "joined_at": to_iso8601(self.joined_at),
        }
