"""Shared fixtures: an in-memory database per test and a small record factory."""
import asyncio
import uuid
from typing import Any, Awaitable, Callable

import pytest

from models.database import (
    close_db,
    configure_database,
    get_session,
    init_db,
    reset_database_state,
)
from models.resource import Resource
from models.team import Team
from models.user import User


@pytest.fixture
def run_in_db() -> Callable[[Callable[[], Awaitable[Any]]], Any]:
    """Run an async scenario against a fresh sqlite+aiosqlite in-memory database."""
    configure_database("sqlite+aiosqlite:///:memory:")

    def _run(scenario: Callable[[], Awaitable[Any]]) -> Any:
        async def _wrapped() -> Any:
            await init_db()
            try:
                return await scenario()
            finally:
                await close_db()

        return asyncio.run(_wrapped())

    yield _run
    reset_database_state()


class OrgFactory:
    """Inserts users, teams and resources keyed by short names."""

    async def users(self, *names: str) -> dict[str, uuid.UUID]:
        ids = {name: uuid.uuid4() for name in names}
        async with get_session() as session:
            for name, user_id in ids.items():
                session.add(
                    User(id=user_id, email=f"{name.lower()}@example.com", name=name, role="RM")
                )
            await session.commit()
        return ids

    async def teams(self, *names: str) -> dict[str, uuid.UUID]:
        ids = {name: uuid.uuid4() for name in names}
        async with get_session() as session:
            for name, team_id in ids.items():
                session.add(Team(id=team_id, name=name))
            await session.commit()
        return ids

    async def resources(self, *names: str) -> dict[str, uuid.UUID]:
        ids = {name: uuid.uuid4() for name in names}
        async with get_session() as session:
            for name, resource_id in ids.items():
                session.add(Resource(id=resource_id, name=name, segment="Private"))
            await session.commit()
        return ids


@pytest.fixture
def org() -> OrgFactory:
    return OrgFactory()
