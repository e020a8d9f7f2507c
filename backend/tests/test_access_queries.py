import uuid

import pytest

from models.database import get_session
from models.team_member import TeamMember
from services import access_queries, team_access
from services.errors import NotFoundError


async def _build_org(org):
    u = await org.users("Emma", "Sarah", "Tom")
    t = await org.teams("APAC", "EMEA")
    r = await org.resources("Family Trust Fund", "TechCorp")
    await team_access.assign_manager(u["Emma"], u["Sarah"])
    await team_access.add_user_to_team(u["Emma"], t["APAC"])
    await team_access.add_user_to_team(u["Tom"], t["EMEA"])
    await team_access.add_user_to_team(u["Sarah"], t["EMEA"])
    await team_access.assign_resource_to_team(t["APAC"], r["Family Trust Fund"])
    return u, t, r


def test_members_of_lists_direct_members_before_managers(run_in_db, org) -> None:
    async def _scenario():
        u, t, _ = await _build_org(org)
        return u, await access_queries.members_of(t["APAC"])

    u, members = run_in_db(_scenario)

    assert [(m.user_name, m.access_type, m.granted_via_name) for m in members] == [
        ("Emma", "direct", None),
        ("Sarah", "manager", "Emma"),
    ]
    assert members[1].to_dict()["granted_via"] == str(u["Emma"])


def test_teams_of_reports_access_type_per_team(run_in_db, org) -> None:
    async def _scenario():
        u, _, _ = await _build_org(org)
        return await access_queries.teams_of(u["Sarah"])

    teams = run_in_db(_scenario)

    assert [(team.team_name, team.access_type) for team in teams] == [
        ("APAC", "manager"),
        ("EMEA", "direct"),
    ]


def test_accessors_match_team_members_after_assignment(run_in_db, org) -> None:
    async def _scenario():
        _, t, r = await _build_org(org)
        accessors = await access_queries.accessors_of(r["Family Trust Fund"])
        members = await access_queries.members_of(t["APAC"])
        return accessors, members

    accessors, members = run_in_db(_scenario)

    assert {a.user_id for a in accessors} == {m.user_id for m in members}


def test_accessors_after_removal_keep_only_other_team_paths(run_in_db, org) -> None:
    async def _scenario():
        u, t, r = await _build_org(org)
        await team_access.assign_resource_to_team(t["EMEA"], r["Family Trust Fund"])
        await team_access.remove_resource_from_team(t["APAC"], r["Family Trust Fund"])
        return u, t, await access_queries.accessors_of(r["Family Trust Fund"])

    u, t, accessors = run_in_db(_scenario)

    by_user = {a.user_id: a for a in accessors}
    assert set(by_user) == {u["Sarah"], u["Tom"]}
    assert [team.team_id for team in by_user[u["Sarah"]].teams] == [t["EMEA"]]


def test_resources_for_user_and_can_access(run_in_db, org) -> None:
    async def _scenario():
        u, _, r = await _build_org(org)
        sarah = await access_queries.resources_for_user(u["Sarah"])
        tom = await access_queries.resources_for_user(u["Tom"])
        return (
            [resource.name for resource in sarah],
            tom,
            await access_queries.can_access(u["Sarah"], r["Family Trust Fund"]),
            await access_queries.can_access(u["Tom"], r["Family Trust Fund"]),
        )

    sarah, tom, sarah_can, tom_can = run_in_db(_scenario)

    assert sarah == ["Family Trust Fund"]
    assert tom == []
    assert sarah_can is True
    assert tom_can is False


def test_client_access_report_groups_members_by_team(run_in_db, org) -> None:
    async def _scenario():
        _, t, r = await _build_org(org)
        await team_access.assign_resource_to_team(t["EMEA"], r["Family Trust Fund"])
        return await access_queries.client_access_report(r["Family Trust Fund"])

    report = run_in_db(_scenario)

    assert report["resource"]["name"] == "Family Trust Fund"
    assert [entry["team"]["name"] for entry in report["teams"]] == ["APAC", "EMEA"]
    # Sarah is in both teams but counted once
    assert report["total_users"] == 3


def test_queries_reject_unknown_ids(run_in_db, org) -> None:
    async def _scenario():
        with pytest.raises(NotFoundError):
            await access_queries.members_of(uuid.uuid4())
        with pytest.raises(NotFoundError):
            await access_queries.client_access_report(uuid.uuid4())

    run_in_db(_scenario)


def test_find_invariant_violations_reports_hand_written_rows(run_in_db, org) -> None:
    async def _scenario():
        u, t, _ = await _build_org(org)
        x = await org.users("Stranger")
        async with get_session() as session:
            session.add(
                TeamMember(
                    team_id=t["APAC"],
                    user_id=x["Stranger"],
                    access_type="manager",
                    granted_via=u["Emma"],
                )
            )
            await session.commit()
        return x, await access_queries.find_invariant_violations(t["APAC"])

    x, violations = run_in_db(_scenario)

    assert [(v.kind, v.user_id) for v in violations] == [("not_subordinate", x["Stranger"])]
