"""
Management hierarchy resolution.

Pure functions over a ManagerGraph snapshot: upward closure, cycle detection
and depth measurement. Every traversal is an explicit worklist with a visited
guard and a hop limit, so each one terminates even if the stored graph were
to contain a cycle.

The only store access is load_manager_graph / get_user_managers; everything
else can be exercised with a graph built from plain tuples.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Callable, Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User
from models.user_manager import UserManager


@dataclass(frozen=True)
class ChainLink:
    """A manager reached while walking up from a user."""

    manager_id: UUID
    via: UUID  # the immediate subordinate this manager was reached through
    hops: int


class ManagerGraph:
    """Immutable adjacency view over manager edges (user_id -> manager_id)."""

    def __init__(self, edges: Iterable[tuple[UUID, UUID]] = ()) -> None:
        self._managers: dict[UUID, list[UUID]] = {}
        self._subordinates: dict[UUID, list[UUID]] = {}
        self._edges: list[tuple[UUID, UUID]] = []
        for user_id, manager_id in edges:
            if manager_id in self._managers.get(user_id, ()):
                continue
            self._managers.setdefault(user_id, []).append(manager_id)
            self._subordinates.setdefault(manager_id, []).append(user_id)
            self._edges.append((user_id, manager_id))

    @property
    def edges(self) -> list[tuple[UUID, UUID]]:
        return list(self._edges)

    def direct_managers(self, user_id: UUID) -> list[UUID]:
        return list(self._managers.get(user_id, ()))

    def direct_subordinates(self, manager_id: UUID) -> list[UUID]:
        return list(self._subordinates.get(manager_id, ()))

    def has_edge(self, user_id: UUID, manager_id: UUID) -> bool:
        return manager_id in self._managers.get(user_id, ())

    def with_edge(self, user_id: UUID, manager_id: UUID) -> ManagerGraph:
        return ManagerGraph([*self._edges, (user_id, manager_id)])

    def without_edge(self, user_id: UUID, manager_id: UUID) -> ManagerGraph:
        return ManagerGraph(e for e in self._edges if e != (user_id, manager_id))

    def __len__(self) -> int:
        return len(self._edges)


def manager_chain(graph: ManagerGraph, user_id: UUID, max_depth: int) -> list[ChainLink]:
    """
    Every manager above user_id within max_depth hops, nearest first.

    A manager reachable along several paths is reported once, through the
    first (shortest) path found. The starting user is never reported.
    """
    links: list[ChainLink] = []
    visited: set[UUID] = {user_id}
    queue: deque[tuple[UUID, int]] = deque([(user_id, 0)])
    while queue:
        current, hops = queue.popleft()
        if hops >= max_depth:
            continue
        for manager_id in graph.direct_managers(current):
            if manager_id in visited:
                continue
            visited.add(manager_id)
            links.append(ChainLink(manager_id=manager_id, via=current, hops=hops + 1))
            queue.append((manager_id, hops + 1))
    return links


def managers_of(graph: ManagerGraph, user_id: UUID, max_depth: int) -> list[UUID]:
    """Ids of every manager above user_id within max_depth hops, nearest first."""
    return [link.manager_id for link in manager_chain(graph, user_id, max_depth)]


def subordinates_of(
    graph: ManagerGraph, manager_id: UUID, max_depth: int | None = None
) -> list[UUID]:
    """Ids of everyone managed by manager_id, directly or transitively."""
    found: list[UUID] = []
    visited: set[UUID] = {manager_id}
    queue: deque[tuple[UUID, int]] = deque([(manager_id, 0)])
    while queue:
        current, hops = queue.popleft()
        if max_depth is not None and hops >= max_depth:
            continue
        for subordinate_id in graph.direct_subordinates(current):
            if subordinate_id in visited:
                continue
            visited.add(subordinate_id)
            found.append(subordinate_id)
            queue.append((subordinate_id, hops + 1))
    return found


def would_create_cycle(graph: ManagerGraph, user_id: UUID, manager_id: UUID) -> bool:
    """
    True if adding "manager_id manages user_id" would close a loop.

    That is the case when manager_id is already managed by user_id along any
    path, not just through a direct reverse edge.
    """
    if user_id == manager_id:
        return True
    return manager_id in subordinates_of(graph, user_id)


def _longest_chain(
    start: UUID, neighbours: Callable[[UUID], list[UUID]], limit: int
) -> int:
    longest = 0
    stack: list[tuple[UUID, tuple[UUID, ...]]] = [(start, (start,))]
    while stack:
        node, path = stack.pop()
        hops = len(path) - 1
        longest = max(longest, hops)
        if hops >= limit:
            continue
        for nxt in neighbours(node):
            if nxt in path:
                continue
            stack.append((nxt, path + (nxt,)))
    return longest


def depth_of(graph: ManagerGraph, user_id: UUID, max_iterations: int) -> int:
    """Length of the longest upward chain from user_id, following every manager."""
    return _longest_chain(user_id, graph.direct_managers, max_iterations)


def depth_below(graph: ManagerGraph, user_id: UUID, max_iterations: int) -> int:
    """Length of the longest downward chain from user_id, following every subordinate."""
    return _longest_chain(user_id, graph.direct_subordinates, max_iterations)


def chain_length_with_edge(
    graph: ManagerGraph, user_id: UUID, manager_id: UUID, max_iterations: int
) -> int:
    """Longest reporting chain that would run through a new user -> manager edge."""
    return (
        depth_below(graph, user_id, max_iterations)
        + 1
        + depth_of(graph, manager_id, max_iterations)
    )


async def load_manager_graph(session: AsyncSession) -> ManagerGraph:
    """Read every manager edge, oldest first, into a graph snapshot."""
    result = await session.execute(
        select(UserManager.user_id, UserManager.manager_id).order_by(
            UserManager.created_at, UserManager.user_id, UserManager.manager_id
        )
    )
    return ManagerGraph((row.user_id, row.manager_id) for row in result.all())


async def get_user_managers(
    session: AsyncSession, user_id: UUID, max_depth: int
) -> list[User]:
    """Managers of user_id within max_depth hops as User rows, nearest first."""
    graph = await load_manager_graph(session)
    manager_ids = managers_of(graph, user_id, max_depth)
    if not manager_ids:
        return []
    result = await session.execute(select(User).where(User.id.in_(manager_ids)))
    by_id = {user.id: user for user in result.scalars().all()}
    return [by_id[manager_id] for manager_id in manager_ids if manager_id in by_id]
