"""
Access propagation engine.

Keeps the team_members table consistent with the management hierarchy:

- add_user_to_team / remove_user_from_team change direct memberships
- assign_manager / remove_manager change manager edges
- assign_resource_to_team / remove_resource_from_team change resource visibility

Every manager row (team, M, manager, granted_via=S) is anchored: S is a direct
subordinate of M who holds a row in the same team, and following granted_via
downwards always ends at a direct member. Grants walk up the hierarchy and
stop at the first user who already has access. Removals re-check the
affected managers with a worklist: a manager keeps access (re-anchored if
needed) while any direct subordinate is still in the team, otherwise the row
is deleted and that manager's own managers are re-checked.

Each action runs in one session and commits once. Validation, not-found and
conflict errors are raised before the first write. The returned log lists the
mutations performed, in order.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.database import get_session
from models.team import Team
from models.team_member import ACCESS_DIRECT, ACCESS_MANAGER, TeamMember
from models.team_resource import TeamResource
from models.user import User
from models.user_manager import MANAGER_TYPES, UserManager
from services.context import parse_id, resolve_action_context
from services.errors import (
    AccessControlError,
    CycleError,
    DepthExceededError,
    DuplicateAssignmentError,
    DuplicateEdgeError,
    DuplicateMembershipError,
    NotFoundError,
    SelfManagementError,
    ValidationError,
)
from services.hierarchy import (
    ManagerGraph,
    chain_length_with_edge,
    load_manager_graph,
    would_create_cycle,
)
from services.locks import HIERARCHY_LOCK_KEY, team_lock_key, team_locks

logger = logging.getLogger(__name__)


@dataclass
class ActionResult:
    """Outcome of a successful action: its name and the ordered mutation log."""

    action: str
    log: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {"success": True, "action": self.action, "results": list(self.log)}


class TeamMemberships:
    """
    The membership rows of one team, keyed by user.

    Loaded once per team per action and kept in step with the pending writes,
    so lookups during propagation see the action's own changes without
    flushing.
    """

    def __init__(self, session: AsyncSession, team_id: UUID, rows: Iterable[TeamMember]) -> None:
        self.session = session
        self.team_id = team_id
        self._rows: dict[UUID, TeamMember] = {row.user_id: row for row in rows}

    @classmethod
    async def load(cls, session: AsyncSession, team_id: UUID) -> TeamMemberships:
        result = await session.execute(
            select(TeamMember)
            .where(TeamMember.team_id == team_id)
            .order_by(TeamMember.joined_at, TeamMember.user_id)
        )
        return cls(session, team_id, result.scalars().all())

    def get(self, user_id: UUID) -> Optional[TeamMember]:
        return self._rows.get(user_id)

    def has(self, user_id: UUID) -> bool:
        return user_id in self._rows

    def user_ids(self) -> list[UUID]:
        return list(self._rows)

    def add(self, user_id: UUID, access_type: str, granted_via: UUID | None) -> TeamMember:
        row = TeamMember(
            team_id=self.team_id,
            user_id=user_id,
            access_type=access_type,
            granted_via=granted_via,
        )
        self.session.add(row)
        self._rows[user_id] = row
        return row

    def reanchor(self, user_id: UUID, granted_via: UUID) -> None:
        row = self._rows[user_id]
        row.access_type = ACCESS_MANAGER
        row.granted_via = granted_via

    async def remove(self, user_id: UUID) -> None:
        row = self._rows.pop(user_id)
        await self.session.delete(row)


def _propagate_grants(
    memberships: TeamMemberships,
    graph: ManagerGraph,
    seeds: Iterable[tuple[UUID, UUID]],
    max_depth: int,
    log: list[str],
) -> None:
    """
    Give manager access to everyone above the seeds who does not have it yet.

    seeds are (manager_id, via) pairs one hop above a user who already holds a
    row. The walk stops at users who already have access: their own managers
    were granted when they joined.
    """
    team_id = memberships.team_id
    queue: deque[tuple[UUID, UUID, int]] = deque(
        (manager_id, via, 1) for manager_id, via in seeds
    )
    visited: set[UUID] = set()
    while queue:
        manager_id, via, hops = queue.popleft()
        if manager_id in visited or hops > max_depth:
            continue
        visited.add(manager_id)
        if memberships.has(manager_id):
            continue
        memberships.add(manager_id, ACCESS_MANAGER, via)
        log.append(f"Added {manager_id} to {team_id} as MANAGER (via {via})")
        for upper_id in graph.direct_managers(manager_id):
            queue.append((upper_id, manager_id, hops + 1))


async def _revoke_unanchored(
    memberships: TeamMemberships,
    graph: ManagerGraph,
    seeds: Iterable[UUID],
    log: list[str],
    removed: set[UUID],
) -> set[UUID]:
    """
    Re-check manager rows until every survivor is anchored.

    A checked manager keeps its row while any direct subordinate still holds a
    row in the team; if its recorded anchor is gone it is re-pointed at the
    first remaining one. Otherwise the row is deleted and the manager's own
    managers are queued. Only deletions enqueue work, so the loop ends after
    at most one deletion per member. Users deleted here are added to removed,
    which is returned.
    """
    team_id = memberships.team_id
    queue: deque[UUID] = deque(seeds)
    while queue:
        user_id = queue.popleft()
        row = memberships.get(user_id)
        if row is None or row.access_type == ACCESS_DIRECT:
            continue
        anchors = [
            subordinate_id
            for subordinate_id in graph.direct_subordinates(user_id)
            if memberships.has(subordinate_id)
        ]
        if row.granted_via in anchors:
            continue
        if anchors:
            previous = row.granted_via
            memberships.reanchor(user_id, anchors[0])
            log.append(
                f"Kept {user_id} in {team_id} as MANAGER (via {anchors[0]}, was via {previous})"
            )
            continue
        await memberships.remove(user_id)
        removed.add(user_id)
        log.append(f"Removed {user_id} from {team_id} (no other path)")
        queue.extend(graph.direct_managers(user_id))
    return removed


async def _lock_teams(session: AsyncSession, team_ids: Iterable[UUID]) -> None:
    """Row-lock teams for the rest of the transaction (no-op on SQLite)."""
    ids = sorted(set(team_ids), key=str)
    if ids:
        await session.execute(
            select(Team.id).where(Team.id.in_(ids)).order_by(Team.id).with_for_update()
        )


async def _lock_users(session: AsyncSession, user_ids: Iterable[UUID]) -> None:
    ids = sorted(set(user_ids), key=str)
    if ids:
        await session.execute(
            select(User.id).where(User.id.in_(ids)).order_by(User.id).with_for_update()
        )


async def _execute(
    action: str,
    lock_keys: list[str],
    run: Callable[[AsyncSession, list[str]], Awaitable[None]],
    session: AsyncSession | None,
    **log_fields: object,
) -> ActionResult:
    """
    Run an action under its locks in one transaction.

    If session is provided, uses it and does not commit (caller commits).
    The in-process locks are then released after the flush, so they cover
    only this action and not the caller's later commit; several actions can
    share one caller transaction. Row locks taken with SELECT ... FOR UPDATE
    stay held until the caller commits or rolls back.
    """
    result = ActionResult(action=action)
    async with team_locks.hold(lock_keys):
        try:
            if session is not None:
                await run(session, result.log)
                await session.flush()
            else:
                async with get_session() as sess:
                    await run(sess, result.log)
                    await sess.commit()
        except AccessControlError as exc:
            logger.warning(
                "[team_access] %s rejected (%s): %s %s",
                action,
                exc.code,
                exc.message,
                log_fields,
            )
            raise
    logger.info(
        "[team_access] %s ok: %d mutation(s) %s",
        action,
        len(result.log),
        log_fields,
    )
    return result


async def add_user_to_team(
    user_id: UUID | str,
    team_id: UUID | str,
    *,
    session: AsyncSession | None = None,
) -> ActionResult:
    """
    Make user_id a direct member of team_id.

    Every manager above the user (within MAX_MANAGER_DEPTH hops) who has no
    row in the team yet gains manager access, attributed to the manager's
    immediate subordinate in the chain.

    Raises NotFoundError if the user or team is missing and
    DuplicateMembershipError if the user already has a row in the team.
    """
    user_uuid = parse_id(user_id, "userId")
    team_uuid = parse_id(team_id, "teamId")

    async def _run(sess: AsyncSession, log: list[str]) -> None:
        context = await resolve_action_context(sess, user_id=user_uuid, team_id=team_uuid)
        user, team = context.user, context.team
        await _lock_teams(sess, [team.id])
        memberships = await TeamMemberships.load(sess, team.id)
        existing = memberships.get(user.id)
        if existing is not None:
            raise DuplicateMembershipError(
                f"User {user.id} is already a member of team {team.id} "
                f"({existing.access_type} access)"
            )

        memberships.add(user.id, ACCESS_DIRECT, None)
        log.append(f"Added {user.id} to {team.id} as DIRECT member")

        graph = await load_manager_graph(sess)
        _propagate_grants(
            memberships,
            graph,
            [(manager_id, user.id) for manager_id in graph.direct_managers(user.id)],
            settings.MAX_MANAGER_DEPTH,
            log,
        )

    return await _execute(
        "add_user_to_team",
        [HIERARCHY_LOCK_KEY, team_lock_key(team_uuid)],
        _run,
        session,
        user_id=str(user_uuid),
        team_id=str(team_uuid),
    )


async def remove_user_from_team(
    user_id: UUID | str,
    team_id: UUID | str,
    *,
    session: AsyncSession | None = None,
) -> ActionResult:
    """
    Remove user_id's direct membership of team_id.

    If the user still manages someone in the team they keep manager access
    through that subordinate. Otherwise their row is deleted and the removal
    cascades up the hierarchy to every manager left without a path to the
    team.

    Raises NotFoundError if the user, team or direct membership is missing.
    """
    user_uuid = parse_id(user_id, "userId")
    team_uuid = parse_id(team_id, "teamId")

    async def _run(sess: AsyncSession, log: list[str]) -> None:
        context = await resolve_action_context(sess, user_id=user_uuid, team_id=team_uuid)
        user, team = context.user, context.team
        await _lock_teams(sess, [team.id])
        memberships = await TeamMemberships.load(sess, team.id)
        row = memberships.get(user.id)
        if row is None or row.access_type != ACCESS_DIRECT:
            raise NotFoundError(
                "membership",
                f"User {user.id} is not a direct member of team {team.id}",
            )

        graph = await load_manager_graph(sess)
        anchors = [
            subordinate_id
            for subordinate_id in graph.direct_subordinates(user.id)
            if memberships.has(subordinate_id)
        ]
        log.append(f"Removed {user.id} from {team.id}")
        if anchors:
            memberships.reanchor(user.id, anchors[0])
            log.append(
                f"Kept {user.id} in {team.id} as MANAGER (via {anchors[0]})"
            )
            return

        await memberships.remove(user.id)
        await _revoke_unanchored(
            memberships, graph, graph.direct_managers(user.id), log, {user.id}
        )

    return await _execute(
        "remove_user_from_team",
        [HIERARCHY_LOCK_KEY, team_lock_key(team_uuid)],
        _run,
        session,
        user_id=str(user_uuid),
        team_id=str(team_uuid),
    )


async def _teams_with_access(sess: AsyncSession, user_id: UUID) -> list[UUID]:
    result = await sess.execute(
        select(TeamMember.team_id)
        .where(TeamMember.user_id == user_id)
        .order_by(TeamMember.joined_at, TeamMember.team_id)
    )
    return list(result.scalars().all())


async def assign_manager(
    user_id: UUID | str,
    manager_id: UUID | str,
    *,
    manager_type: str = "line_manager",
    session: AsyncSession | None = None,
) -> ActionResult:
    """
    Record that manager_id manages user_id.

    Checks, in order: manager type, self-management, duplicate edge, cycles
    (along any path) and depth (the longest chain through the new edge must
    not exceed MAX_MANAGER_DEPTH). Then, for every team where the user holds
    access, the manager and the manager's own managers gain manager access if
    they lack it, each attributed to the next user down the chain.
    """
    user_uuid = parse_id(user_id, "userId")
    manager_uuid = parse_id(manager_id, "managerId")
    if manager_type not in MANAGER_TYPES:
        raise ValidationError(
            "managerType",
            f"Invalid managerType: {manager_type!r} (expected one of {', '.join(MANAGER_TYPES)})",
        )
    if user_uuid == manager_uuid:
        raise SelfManagementError()

    async def _run(sess: AsyncSession, log: list[str]) -> None:
        context = await resolve_action_context(sess, user_id=user_uuid, manager_id=manager_uuid)
        user, manager = context.user, context.manager
        await _lock_users(sess, [user.id, manager.id])
        graph = await load_manager_graph(sess)
        max_depth = settings.MAX_MANAGER_DEPTH

        if graph.has_edge(user.id, manager.id):
            raise DuplicateEdgeError(
                f"{manager.id} already manages {user.id}"
            )
        if would_create_cycle(graph, user.id, manager.id):
            raise CycleError()
        chain_length = chain_length_with_edge(graph, user.id, manager.id, max_depth + 1)
        if chain_length > max_depth:
            raise DepthExceededError(max_depth, chain_length)

        team_ids = await _teams_with_access(sess, user.id)
        await _lock_teams(sess, team_ids)

        sess.add(
            UserManager(user_id=user.id, manager_id=manager.id, manager_type=manager_type)
        )
        log.append(f"{manager.id} now manages {user.id}")
        graph = graph.with_edge(user.id, manager.id)

        async with team_locks.hold(team_lock_key(team_id) for team_id in team_ids):
            for team_id in team_ids:
                memberships = await TeamMemberships.load(sess, team_id)
                if not memberships.has(user.id):
                    continue
                _propagate_grants(
                    memberships, graph, [(manager.id, user.id)], max_depth, log
                )

    return await _execute(
        "assign_manager",
        [HIERARCHY_LOCK_KEY],
        _run,
        session,
        user_id=str(user_uuid),
        manager_id=str(manager_uuid),
    )


async def remove_manager(
    user_id: UUID | str,
    manager_id: UUID | str,
    *,
    session: AsyncSession | None = None,
) -> ActionResult:
    """
    Delete the edge "manager_id manages user_id".

    In every team reachable through user_id the manager is re-checked: they
    keep access while another direct subordinate is still in the team,
    otherwise they lose it and the check repeats for their own managers.

    Raises NotFoundError if either user or the edge does not exist.
    """
    user_uuid = parse_id(user_id, "userId")
    manager_uuid = parse_id(manager_id, "managerId")

    async def _run(sess: AsyncSession, log: list[str]) -> None:
        context = await resolve_action_context(sess, user_id=user_uuid, manager_id=manager_uuid)
        user, manager = context.user, context.manager
        edge = await sess.get(UserManager, (user.id, manager.id))
        if edge is None:
            raise NotFoundError(
                "manager_edge", f"{manager.id} does not manage {user.id}"
            )
        await _lock_users(sess, [user.id, manager.id])
        graph = await load_manager_graph(sess)

        via_result = await sess.execute(
            select(TeamMember.team_id).where(
                TeamMember.user_id == manager.id,
                TeamMember.granted_via == user.id,
            )
        )
        team_ids = list(
            dict.fromkeys(
                [*await _teams_with_access(sess, user.id), *via_result.scalars().all()]
            )
        )
        await _lock_teams(sess, team_ids)

        await sess.delete(edge)
        log.append(f"{manager.id} no longer manages {user.id}")
        graph = graph.without_edge(user.id, manager.id)

        async with team_locks.hold(team_lock_key(team_id) for team_id in team_ids):
            for team_id in team_ids:
                memberships = await TeamMemberships.load(sess, team_id)
                await _revoke_unanchored(memberships, graph, [manager.id], log, set())

    return await _execute(
        "remove_manager",
        [HIERARCHY_LOCK_KEY],
        _run,
        session,
        user_id=str(user_uuid),
        manager_id=str(manager_uuid),
    )


def _describe_access(row: TeamMember) -> str:
    if row.access_type == ACCESS_DIRECT:
        return "direct member"
    return f"manager via {row.granted_via}"


async def assign_resource_to_team(
    team_id: UUID | str,
    resource_id: UUID | str,
    *,
    session: AsyncSession | None = None,
) -> ActionResult:
    """
    Make resource_id visible to team_id.

    Memberships are untouched; the log lists everyone who can now see the
    resource through this team.
    """
    team_uuid = parse_id(team_id, "teamId")
    resource_uuid = parse_id(resource_id, "resourceId")

    async def _run(sess: AsyncSession, log: list[str]) -> None:
        context = await resolve_action_context(sess, team_id=team_uuid, resource_id=resource_uuid)
        team, resource = context.team, context.resource
        await _lock_teams(sess, [team.id])
        existing = await sess.get(TeamResource, (team.id, resource.id))
        if existing is not None:
            raise DuplicateAssignmentError(
                f"Resource {resource.id} is already assigned to team {team.id}"
            )

        sess.add(TeamResource(team_id=team.id, resource_id=resource.id))
        log.append(f"Assigned {resource.id} to {team.id}")

        memberships = await TeamMemberships.load(sess, team.id)
        members = [memberships.get(uid) for uid in memberships.user_ids()]
        log.append(f"{len(members)} users can now access {resource.id}:")
        for row in members:
            log.append(f"- {row.user_id} ({_describe_access(row)})")

    return await _execute(
        "assign_resource_to_team",
        [team_lock_key(team_uuid)],
        _run,
        session,
        team_id=str(team_uuid),
        resource_id=str(resource_uuid),
    )


async def remove_resource_from_team(
    team_id: UUID | str,
    resource_id: UUID | str,
    *,
    session: AsyncSession | None = None,
) -> ActionResult:
    """
    Stop showing resource_id to team_id.

    The log reports, per member, whether they keep access through another
    team that is also assigned the resource.
    """
    team_uuid = parse_id(team_id, "teamId")
    resource_uuid = parse_id(resource_id, "resourceId")

    async def _run(sess: AsyncSession, log: list[str]) -> None:
        context = await resolve_action_context(sess, team_id=team_uuid, resource_id=resource_uuid)
        team, resource = context.team, context.resource
        await _lock_teams(sess, [team.id])
        assignment = await sess.get(TeamResource, (team.id, resource.id))
        if assignment is None:
            raise NotFoundError(
                "assignment",
                f"Resource {resource.id} is not assigned to team {team.id}",
            )

        await sess.delete(assignment)
        log.append(f"Removed {resource.id} from {team.id}")

        other_teams = await sess.execute(
            select(TeamResource.team_id).where(
                TeamResource.resource_id == resource.id,
                TeamResource.team_id != team.id,
            )
        )
        other_team_ids = list(other_teams.scalars().all())
        retained: dict[UUID, UUID] = {}
        if other_team_ids:
            rows = await sess.execute(
                select(TeamMember.user_id, TeamMember.team_id)
                .where(TeamMember.team_id.in_(other_team_ids))
                .order_by(TeamMember.team_id)
            )
            for member_id, other_team_id in rows.all():
                retained.setdefault(member_id, other_team_id)

        memberships = await TeamMemberships.load(sess, team.id)
        for member_id in memberships.user_ids():
            if member_id in retained:
                log.append(
                    f"{member_id} still has access (via {retained[member_id]})"
                )
            else:
                log.append(f"{member_id} lost access (no other path)")

    return await _execute(
        "remove_resource_from_team",
        [team_lock_key(team_uuid)],
        _run,
        session,
        team_id=str(team_uuid),
        resource_id=str(resource_uuid),
    )
