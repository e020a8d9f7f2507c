"""
Read-only access views.

Everything here is computed from the current team_members, team_resources
and user_managers rows on every call. Nothing is cached and nothing is
written.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from config import settings
from models.database import get_session
from models.resource import Resource
from models.team import Team
from models.team_member import ACCESS_DIRECT, TeamMember
from models.team_resource import TeamResource
from models.user import User
from services.context import parse_id, resolve_action_context
from services.hierarchy import load_manager_graph, managers_of

T = TypeVar("T")


@dataclass(frozen=True)
class MemberAccess:
    """One member of a team and why they are in it."""

    team_id: UUID
    user_id: UUID
    user_name: str
    user_email: str
    access_type: str
    granted_via: Optional[UUID] = None
    granted_via_name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "team_id": str(self.team_id),
            "user_id": str(self.user_id),
            "user_name": self.user_name,
            "user_email": self.user_email,
            "access_type": self.access_type,
            "granted_via": str(self.granted_via) if self.granted_via else None,
            "granted_via_name": self.granted_via_name,
        }


@dataclass(frozen=True)
class TeamAccess:
    """One team a user belongs to and why."""

    team_id: UUID
    team_name: str
    access_type: str
    granted_via: Optional[UUID] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "team_id": str(self.team_id),
            "team_name": self.team_name,
            "access_type": self.access_type,
            "granted_via": str(self.granted_via) if self.granted_via else None,
        }


@dataclass
class ResourceAccessor:
    """A user who can see a resource, with every team that grants it."""

    user_id: UUID
    user_name: str
    teams: list[TeamAccess] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": str(self.user_id),
            "user_name": self.user_name,
            "teams": [team.to_dict() for team in self.teams],
        }


@dataclass(frozen=True)
class InvariantViolation:
    """A membership row (or missing row) that breaks the access invariant."""

    kind: str  # 'dangling_anchor', 'not_subordinate', 'unanchored_chain', 'missing_grant'
    team_id: UUID
    user_id: UUID
    detail: str


async def _with_session(
    session: AsyncSession | None, run: Callable[[AsyncSession], Awaitable[T]]
) -> T:
    if session is not None:
        return await run(session)
    async with get_session() as sess:
        return await run(sess)


async def members_of(
    team_id: UUID | str, *, session: AsyncSession | None = None
) -> list[MemberAccess]:
    """Every member of a team, direct and manager-derived."""
    team_uuid = parse_id(team_id, "teamId")

    async def _run(sess: AsyncSession) -> list[MemberAccess]:
        await resolve_action_context(sess, team_id=team_uuid)
        grantor = aliased(User)
        result = await sess.execute(
            select(TeamMember, User, grantor.name)
            .join(User, User.id == TeamMember.user_id)
            .outerjoin(grantor, grantor.id == TeamMember.granted_via)
            .where(TeamMember.team_id == team_uuid)
            .order_by(TeamMember.access_type, User.name)
        )
        return [
            MemberAccess(
                team_id=row.team_id,
                user_id=row.user_id,
                user_name=user.name,
                user_email=user.email,
                access_type=row.access_type,
                granted_via=row.granted_via,
                granted_via_name=grantor_name,
            )
            for row, user, grantor_name in result.all()
        ]

    return await _with_session(session, _run)


async def teams_of(
    user_id: UUID | str, *, session: AsyncSession | None = None
) -> list[TeamAccess]:
    """Every team a user belongs to, with the reason."""
    user_uuid = parse_id(user_id, "userId")

    async def _run(sess: AsyncSession) -> list[TeamAccess]:
        await resolve_action_context(sess, user_id=user_uuid)
        result = await sess.execute(
            select(TeamMember, Team.name)
            .join(Team, Team.id == TeamMember.team_id)
            .where(TeamMember.user_id == user_uuid)
            .order_by(Team.name)
        )
        return [
            TeamAccess(
                team_id=row.team_id,
                team_name=team_name,
                access_type=row.access_type,
                granted_via=row.granted_via,
            )
            for row, team_name in result.all()
        ]

    return await _with_session(session, _run)


async def accessors_of(
    resource_id: UUID | str, *, session: AsyncSession | None = None
) -> list[ResourceAccessor]:
    """Every user who can see a resource through any team assigned to it."""
    resource_uuid = parse_id(resource_id, "resourceId")

    async def _run(sess: AsyncSession) -> list[ResourceAccessor]:
        await resolve_action_context(sess, resource_id=resource_uuid)
        result = await sess.execute(
            select(TeamMember, User.name, Team.name)
            .join(TeamResource, TeamResource.team_id == TeamMember.team_id)
            .join(User, User.id == TeamMember.user_id)
            .join(Team, Team.id == TeamMember.team_id)
            .where(TeamResource.resource_id == resource_uuid)
            .order_by(User.name, Team.name)
        )
        accessors: dict[UUID, ResourceAccessor] = {}
        for row, user_name, team_name in result.all():
            accessor = accessors.setdefault(
                row.user_id, ResourceAccessor(user_id=row.user_id, user_name=user_name)
            )
            accessor.teams.append(
                TeamAccess(
                    team_id=row.team_id,
                    team_name=team_name,
                    access_type=row.access_type,
                    granted_via=row.granted_via,
                )
            )
        return list(accessors.values())

    return await _with_session(session, _run)


async def resources_for_user(
    user_id: UUID | str, *, session: AsyncSession | None = None
) -> list[Resource]:
    """Client records a user can see through any of their teams."""
    user_uuid = parse_id(user_id, "userId")

    async def _run(sess: AsyncSession) -> list[Resource]:
        await resolve_action_context(sess, user_id=user_uuid)
        result = await sess.execute(
            select(Resource)
            .join(TeamResource, TeamResource.resource_id == Resource.id)
            .join(TeamMember, TeamMember.team_id == TeamResource.team_id)
            .where(TeamMember.user_id == user_uuid)
            .distinct()
            .order_by(Resource.name)
        )
        return list(result.scalars().all())

    return await _with_session(session, _run)


async def can_access(
    user_id: UUID | str,
    resource_id: UUID | str,
    *,
    session: AsyncSession | None = None,
) -> bool:
    """True if the user belongs to at least one team assigned the resource."""
    user_uuid = parse_id(user_id, "userId")
    resource_uuid = parse_id(resource_id, "resourceId")

    async def _run(sess: AsyncSession) -> bool:
        result = await sess.execute(
            select(TeamMember.team_id)
            .join(TeamResource, TeamResource.team_id == TeamMember.team_id)
            .where(
                TeamMember.user_id == user_uuid,
                TeamResource.resource_id == resource_uuid,
            )
            .limit(1)
        )
        return result.first() is not None

    return await _with_session(session, _run)


async def client_access_report(
    resource_id: UUID | str, *, session: AsyncSession | None = None
) -> dict[str, Any]:
    """
    Who can see a client record, grouped by team.

    Returns {"resource": ..., "teams": [{"team": ..., "members": [...]}],
    "total_users": n} where total_users counts distinct users across teams.
    """
    resource_uuid = parse_id(resource_id, "resourceId")

    async def _run(sess: AsyncSession) -> dict[str, Any]:
        context = await resolve_action_context(sess, resource_id=resource_uuid)
        teams_result = await sess.execute(
            select(Team)
            .join(TeamResource, TeamResource.team_id == Team.id)
            .where(TeamResource.resource_id == resource_uuid)
            .order_by(Team.name)
        )
        teams: list[dict[str, Any]] = []
        seen_users: set[UUID] = set()
        for team in teams_result.scalars().all():
            members = await members_of(team.id, session=sess)
            seen_users.update(member.user_id for member in members)
            teams.append(
                {
                    "team": team.to_dict(),
                    "members": [member.to_dict() for member in members],
                }
            )
        return {
            "resource": context.resource.to_dict(),
            "teams": teams,
            "total_users": len(seen_users),
        }

    return await _with_session(session, _run)


async def find_invariant_violations(
    team_id: UUID | str | None = None, *, session: AsyncSession | None = None
) -> list[InvariantViolation]:
    """
    Audit the membership table against the hierarchy.

    Reports manager rows whose granted_via is not in the team, is not a
    direct subordinate of the holder, or does not lead down to a direct
    member, and managers within MAX_MANAGER_DEPTH of a direct member who have
    no row at all. An empty list means the table is consistent.
    """
    team_uuid = parse_id(team_id, "teamId") if team_id is not None else None
    max_depth = settings.MAX_MANAGER_DEPTH

    async def _run(sess: AsyncSession) -> list[InvariantViolation]:
        graph = await load_manager_graph(sess)
        query = select(TeamMember)
        if team_uuid is not None:
            query = query.where(TeamMember.team_id == team_uuid)
        result = await sess.execute(query)
        by_team: dict[UUID, dict[UUID, TeamMember]] = {}
        for row in result.scalars().all():
            by_team.setdefault(row.team_id, {})[row.user_id] = row

        violations: list[InvariantViolation] = []
        for current_team, rows in by_team.items():
            for holder_id, row in rows.items():
                if row.access_type == ACCESS_DIRECT:
                    for manager_id in managers_of(graph, holder_id, max_depth):
                        if manager_id not in rows:
                            violations.append(
                                InvariantViolation(
                                    "missing_grant",
                                    current_team,
                                    manager_id,
                                    f"manages direct member {holder_id} but has no row",
                                )
                            )
                    continue
                if row.granted_via not in rows:
                    violations.append(
                        InvariantViolation(
                            "dangling_anchor",
                            current_team,
                            holder_id,
                            f"granted via {row.granted_via}, who is not in the team",
                        )
                    )
                    continue
                if not graph.has_edge(row.granted_via, holder_id):
                    violations.append(
                        InvariantViolation(
                            "not_subordinate",
                            current_team,
                            holder_id,
                            f"granted via {row.granted_via}, who they do not manage",
                        )
                    )
                # Follow granted_via down; it must reach a direct member in time.
                cursor = rows[row.granted_via]
                hops = 1
                visited = {holder_id}
                while cursor.access_type != ACCESS_DIRECT:
                    if (
                        hops >= max_depth
                        or cursor.user_id in visited
                        or cursor.granted_via not in rows
                    ):
                        violations.append(
                            InvariantViolation(
                                "unanchored_chain",
                                current_team,
                                holder_id,
                                f"granted_via chain breaks at {cursor.user_id}",
                            )
                        )
                        break
                    visited.add(cursor.user_id)
                    cursor = rows[cursor.granted_via]
                    hops += 1
        return violations

    return await _with_session(session, _run)
