"""
Resource model - client records whose visibility is granted through teams.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from models.database import Base

RESOURCE_SEGMENTS: tuple[str, ...] = ("Private", "Corporate", "Retail")


class Resource(Base):
    """A client record."""

    __tablename__ = "resources"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="client")
    segment: Mapped[str] = mapped_column(
        String(50), nullable=False
    )  # 'Private', 'Corporate', 'Retail'
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=True
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        from config import to_iso8601

        return {
            "id": str(self.id),
            "name": self.name,
            "type": self.type,
            "segment": self.segment,
            "created_at": to_iso8601(self.created_at),
        }
