import asyncio

from services import access_queries, locks, team_access
from services.locks import TeamLockManager


def test_lock_manager_serializes_same_team_work() -> None:
    manager = TeamLockManager()
    active = 0
    max_active = 0

    async def _worker() -> None:
        nonlocal active, max_active
        async with manager.hold([locks.team_lock_key("t1")]):
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.02)
            active -= 1

    async def _run() -> None:
        await asyncio.gather(_worker(), _worker(), _worker())

    asyncio.run(_run())

    assert max_active == 1
    assert manager._locks == {}
    assert manager._lock_refs == {}


def test_lock_manager_lets_different_teams_overlap() -> None:
    manager = TeamLockManager()
    active = 0
    max_active = 0

    async def _worker(team_id: str) -> None:
        nonlocal active, max_active
        async with manager.hold([locks.team_lock_key(team_id)]):
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.02)
            active -= 1

    async def _run() -> None:
        await asyncio.gather(_worker("t1"), _worker("t2"))

    asyncio.run(_run())

    assert max_active == 2


def test_lock_manager_acquires_keys_in_sorted_order() -> None:
    manager = TeamLockManager()
    finished: list[str] = []

    async def _worker(name: str, keys: list[str]) -> None:
        async with manager.hold(keys):
            await asyncio.sleep(0.01)
        finished.append(name)

    async def _run() -> None:
        await asyncio.wait_for(
            asyncio.gather(
                _worker("forward", ["team:a", "team:b", locks.HIERARCHY_LOCK_KEY]),
                _worker("backward", [locks.HIERARCHY_LOCK_KEY, "team:b", "team:a"]),
            ),
            timeout=1,
        )

    asyncio.run(_run())

    assert sorted(finished) == ["backward", "forward"]
    assert manager._locks == {}


def test_concurrent_adds_grant_a_shared_manager_once(run_in_db, org, monkeypatch) -> None:
    monkeypatch.setattr(team_access, "team_locks", TeamLockManager())

    async def _scenario():
        u = await org.users("Emma", "David", "Sarah")
        t = await org.teams("APAC")
        await team_access.assign_manager(u["Emma"], u["Sarah"])
        await team_access.assign_manager(u["David"], u["Sarah"])
        results = await asyncio.gather(
            team_access.add_user_to_team(u["Emma"], t["APAC"]),
            team_access.add_user_to_team(u["David"], t["APAC"]),
        )
        members = await access_queries.members_of(t["APAC"])
        return u, results, members

    u, results, members = run_in_db(_scenario)

    assert sorted(len(result.log) for result in results) == [1, 2]
    assert sorted(m.user_name for m in members) == ["David", "Emma", "Sarah"]
