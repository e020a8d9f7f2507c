"""Read-only access views over teams, users and client records."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from services import access_queries

router = APIRouter()


@router.get("/teams/{team_id}/members")
async def get_team_members(team_id: str) -> dict[str, Any]:
    members = await access_queries.members_of(team_id)
    return {"team_id": team_id, "members": [member.to_dict() for member in members]}


@router.get("/users/{user_id}/teams")
async def get_user_teams(user_id: str) -> dict[str, Any]:
    teams = await access_queries.teams_of(user_id)
    return {"user_id": user_id, "teams": [team.to_dict() for team in teams]}


@router.get("/users/{user_id}/resources")
async def get_user_resources(user_id: str) -> dict[str, Any]:
    resources = await access_queries.resources_for_user(user_id)
    return {"user_id": user_id, "resources": [resource.to_dict() for resource in resources]}


@router.get("/resources/{resource_id}/accessors")
async def get_resource_accessors(resource_id: str) -> dict[str, Any]:
    accessors = await access_queries.accessors_of(resource_id)
    return {
        "resource_id": resource_id,
        "accessors": [accessor.to_dict() for accessor in accessors],
        "total_users": len(accessors),
    }


@router.get("/resources/{resource_id}/access-report")
async def get_client_access_report(resource_id: str) -> dict[str, Any]:
    return await access_queries.client_access_report(resource_id)


@router.get("/access/violations")
async def get_invariant_violations() -> dict[str, Any]:
    violations = await access_queries.find_invariant_violations()
    return {
        "consistent": not violations,
        "violations": [
            {
                "kind": violation.kind,
                "team_id": str(violation.team_id),
                "user_id": str(violation.user_id),
                "detail": violation.detail,
            }
            for violation in violations
        ],
    }
