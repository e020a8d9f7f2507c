"""Team membership endpoints. Writes go through the propagation engine."""
from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import select

from api.routes.actions import UserTeamRequest
from models.database import get_session
from models.team_member import TeamMember
from services import team_access

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def list_team_members() -> list[dict[str, object]]:
    async with get_session() as session:
        result = await session.execute(
            select(TeamMember).order_by(TeamMember.joined_at.desc())
        )
        return [row.to_dict() for row in result.scalars().all()]


@router.post("")
async def add_team_member(request: UserTeamRequest) -> JSONResponse:
    result = await team_access.add_user_to_team(request.user_id, request.team_id)
    return JSONResponse(
        status_code=201,
        content={
            "success": True,
            "message": "User added to team successfully",
            "results": result.log,
        },
    )


@router.delete("/{team_id}/{user_id}")
async def remove_team_member(team_id: str, user_id: str) -> dict[str, object]:
    result = await team_access.remove_user_from_team(user_id, team_id)
    return {
        "success": True,
        "message": "User removed from team successfully",
        "results": result.log,
    }
