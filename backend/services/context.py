"""
Typed context for engine actions.

Identifiers are parsed up front (ValidationError, no store access), then each
referenced entity is loaded once (NotFoundError) and handed to the action as
an explicit ActionContext.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from models.resource import Resource
from models.team import Team
from models.user import User
from services.errors import NotFoundError, ValidationError


@dataclass(frozen=True)
class ActionContext:
    """Entities an action operates on. Only the ones it asked for are set."""

    user: Optional[User] = None
    team: Optional[Team] = None
    resource: Optional[Resource] = None
    manager: Optional[User] = None


def parse_id(value: UUID | str | None, field: str) -> UUID:
    """Parse an identifier, raising ValidationError for missing or malformed values."""
    if isinstance(value, UUID):
        return value
    if value is None or not str(value).strip():
        raise ValidationError(field, f"{field} is required")
    try:
        return UUID(str(value).strip())
    except ValueError as exc:
        raise ValidationError(field, f"Invalid {field}: {value!r}") from exc


async def resolve_action_context(
    session: AsyncSession,
    *,
    user_id: UUID | None = None,
    team_id: UUID | None = None,
    resource_id: UUID | None = None,
    manager_id: UUID | None = None,
) -> ActionContext:
    """Load every requested entity or raise NotFoundError for the first missing one."""
    user = team = resource = manager = None
    if user_id is not None:
        user = await session.get(User, user_id)
        if user is None:
            raise NotFoundError("user", f"User {user_id} not found")
    if team_id is not None:
        team = await session.get(Team, team_id)
        if team is None:
            raise NotFoundError("team", f"Team {team_id} not found")
    if resource_id is not None:
        resource = await session.get(Resource, resource_id)
        if resource is None:
            raise NotFoundError("resource", f"Resource {resource_id} not found")
    if manager_id is not None:
        manager = await session.get(User, manager_id)
        if manager is None:
            raise NotFoundError("manager", f"Manager {manager_id} not found")
    return ActionContext(user=user, team=team, resource=resource, manager=manager)
