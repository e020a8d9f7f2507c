"""
Engine action endpoints.

Each endpoint takes plain identifiers and returns the ordered mutation log.
Typed engine errors are turned into responses by the app-level handler.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from services import team_access

logger = logging.getLogger(__name__)
router = APIRouter()


class UserTeamRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")
    team_id: Optional[str] = Field(default=None, alias="teamId")


class UserManagerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")
    manager_id: Optional[str] = Field(default=None, alias="managerId")
    manager_type: str = Field(default="line_manager", alias="managerType")


class TeamResourceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    team_id: Optional[str] = Field(default=None, alias="teamId")
    resource_id: Optional[str] = Field(default=None, alias="resourceId")


class ActionResponse(BaseModel):
    success: bool
    action: str
    results: list[str]


AVAILABLE_ACTIONS: list[dict[str, Any]] = [
    {
        "name": "add_user_to_team",
        "method": "POST",
        "endpoint": "/api/actions/add-user-to-team",
        "description": "Add user to team with automatic manager inheritance",
        "parameters": {"userId": "string", "teamId": "string"},
    },
    {
        "name": "remove_user_from_team",
        "method": "POST",
        "endpoint": "/api/actions/remove-user-from-team",
        "description": "Remove user from team and revoke managers left without a path",
        "parameters": {"userId": "string", "teamId": "string"},
    },
    {
        "name": "assign_manager",
        "method": "POST",
        "endpoint": "/api/actions/assign-manager",
        "description": "Assign manager with team inheritance",
        "parameters": {"userId": "string", "managerId": "string"},
    },
    {
        "name": "remove_manager",
        "method": "POST",
        "endpoint": "/api/actions/remove-manager",
        "description": "Remove manager with access recalculation",
        "parameters": {"userId": "string", "managerId": "string"},
    },
    {
        "name": "assign_resource_to_team",
        "method": "POST",
        "endpoint": "/api/actions/assign-resource-to-team",
        "description": "Assign resource to team",
        "parameters": {"teamId": "string", "resourceId": "string"},
    },
    {
        "name": "remove_resource_from_team",
        "method": "POST",
        "endpoint": "/api/actions/remove-resource-from-team",
        "description": "Remove resource from team",
        "parameters": {"teamId": "string", "resourceId": "string"},
    },
]


@router.get("")
async def list_actions() -> dict[str, list[dict[str, Any]]]:
    return {"available_actions": AVAILABLE_ACTIONS}


@router.post("/add-user-to-team", response_model=ActionResponse)
async def add_user_to_team(request: UserTeamRequest) -> dict[str, object]:
    result = await team_access.add_user_to_team(request.user_id, request.team_id)
    return result.to_dict()


@router.post("/remove-user-from-team", response_model=ActionResponse)
async def remove_user_from_team(request: UserTeamRequest) -> dict[str, object]:
    result = await team_access.remove_user_from_team(request.user_id, request.team_id)
    return result.to_dict()


@router.post("/assign-manager", response_model=ActionResponse)
async def assign_manager(request: UserManagerRequest) -> dict[str, object]:
    result = await team_access.assign_manager(
        request.user_id, request.manager_id, manager_type=request.manager_type
    )
    return result.to_dict()


@router.post("/remove-manager", response_model=ActionResponse)
async def remove_manager(request: UserManagerRequest) -> dict[str, object]:
    result = await team_access.remove_manager(request.user_id, request.manager_id)
    return result.to_dict()


@router.post("/assign-resource-to-team", response_model=ActionResponse)
async def assign_resource_to_team(request: TeamResourceRequest) -> dict[str, object]:
    result = await team_access.assign_resource_to_team(request.team_id, request.resource_id)
    return result.to_dict()


@router.post("/remove-resource-from-team", response_model=ActionResponse)
async def remove_resource_from_team(request: TeamResourceRequest) -> dict[str, object]:
    result = await team_access.remove_resource_from_team(
        request.team_id, request.resource_id
    )
    return result.to_dict()
