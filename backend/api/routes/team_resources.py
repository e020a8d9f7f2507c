"""Team resource endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import select

from api.routes.actions import TeamResourceRequest
from models.database import get_session
from models.team_resource import TeamResource
from services import team_access

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def list_team_resources() -> list[dict[str, object]]:
    async with get_session() as session:
        result = await session.execute(
            select(TeamResource).order_by(TeamResource.assigned_at.desc())
        )
        return [row.to_dict() for row in result.scalars().all()]


@router.post("")
async def assign_team_resource(request: TeamResourceRequest) -> JSONResponse:
    result = await team_access.assign_resource_to_team(request.team_id, request.resource_id)
    return JSONResponse(
        status_code=201,
        content={
            "success": True,
            "message": "Resource assigned to team successfully",
            "results": result.log,
        },
    )


@router.delete("/{team_id}/{resource_id}")
async def remove_team_resource(team_id: str, resource_id: str) -> dict[str, object]:
    result = await team_access.remove_resource_from_team(team_id, resource_id)
    return {
        "success": True,
        "message": "Resource removed from team successfully",
        "results": result.log,
    }
