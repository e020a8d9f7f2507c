"""Manager relationship endpoints. Writes go through the propagation engine."""
from __future__ import annotations

import logging

from fastapi import APIRouter
from sqlalchemy import select

from models.database import get_session
from models.user_manager import UserManager
from services import team_access

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def list_user_managers() -> list[dict[str, object]]:
    async with get_session() as session:
        result = await session.execute(
            select(UserManager).order_by(UserManager.created_at.desc())
        )
        return [edge.to_dict() for edge in result.scalars().all()]


@router.post("/{user_id}/{manager_id}")
async def assign_manager(
    user_id: str, manager_id: str, manager_type: str = "line_manager"
) -> dict[str, object]:
    result = await team_access.assign_manager(
        user_id, manager_id, manager_type=manager_type
    )
    return {
        "success": True,
        "message": "Manager relationship assigned successfully",
        "results": result.log,
    }


@router.delete("/{user_id}/{manager_id}")
async def remove_manager(user_id: str, manager_id: str) -> dict[str, object]:
    logger.info(
        "[user_managers] Removing manager relationship: %s -> %s", manager_id, user_id
    )
    result = await team_access.remove_manager(user_id, manager_id)
    return {
        "success": True,
        "message": "Manager relationship removed successfully",
        "results": result.log,
    }
