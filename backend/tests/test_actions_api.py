import logging
import uuid

from fastapi.testclient import TestClient

from api.main import app
from config import settings
from models.database import configure_database, reset_database_state
from services import access_queries, team_access
from services.errors import CycleError, DepthExceededError, DuplicateMembershipError, NotFoundError
from services.locks import TeamLockManager
from services.team_access import ActionResult


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


client = TestClient(app)


def test_add_user_to_team_returns_mutation_log(monkeypatch) -> None:
    captured: dict[str, object] = {}

    async def _fake_add(user_id, team_id, **_kwargs) -> ActionResult:
        captured["args"] = (user_id, team_id)
        return ActionResult("add_user_to_team", [f"Added {user_id} to {team_id} as DIRECT member"])

    monkeypatch.setattr(team_access, "add_user_to_team", _fake_add)

    response = client.post("/api/actions/add-user-to-team", json={"userId": "u1", "teamId": "t1"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "action": "add_user_to_team",
        "results": ["Added u1 to t1 as DIRECT member"],
    }
    assert captured["args"] == ("u1", "t1")


def test_assign_manager_passes_manager_type(monkeypatch) -> None:
    captured: dict[str, object] = {}

    async def _fake_assign(user_id, manager_id, *, manager_type="line_manager", **_kwargs):
        captured.update(user_id=user_id, manager_id=manager_id, manager_type=manager_type)
        return ActionResult("assign_manager", [f"{manager_id} now manages {user_id}"])

    monkeypatch.setattr(team_access, "assign_manager", _fake_assign)

    response = client.post(
        "/api/actions/assign-manager",
        json={"userId": "u1", "managerId": "m1", "managerType": "dotted_line"},
    )

    assert response.status_code == 200
    assert captured == {"user_id": "u1", "manager_id": "m1", "manager_type": "dotted_line"}


def test_engine_errors_map_to_status_codes(monkeypatch) -> None:
    cases = [
        (DuplicateMembershipError("already a member"), 409, "duplicate_membership"),
        (NotFoundError("team"), 404, "not_found"),
        (CycleError(), 400, "cycle"),
        (DepthExceededError(3, 4), 400, "depth_exceeded"),
    ]
    for error, status_code, code in cases:

        async def _raise(*_args, _error=error, **_kwargs):
            raise _error

        monkeypatch.setattr(team_access, "remove_manager", _raise)
        response = client.post(
            "/api/actions/remove-manager", json={"userId": "u1", "managerId": "m1"}
        )
        logger.info("Mapped %s to %s", code, response.status_code)
        assert response.status_code == status_code
        assert response.json()["error"] == code
        assert response.json()["message"] == error.message


def test_missing_identifier_is_a_validation_error() -> None:
    response = client.post("/api/actions/add-user-to-team", json={"userId": str(uuid.uuid4())})

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"
    assert response.json()["field"] == "teamId"


def test_malformed_identifier_is_a_validation_error() -> None:
    response = client.post(
        "/api/actions/assign-resource-to-team",
        json={"teamId": "not-a-uuid", "resourceId": str(uuid.uuid4())},
    )

    assert response.status_code == 400
    assert response.json()["field"] == "teamId"


def test_unknown_manager_type_is_a_validation_error() -> None:
    response = client.post(
        "/api/actions/assign-manager",
        json={
            "userId": str(uuid.uuid4()),
            "managerId": str(uuid.uuid4()),
            "managerType": "not-a-real-type",
        },
    )

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"
    assert response.json()["field"] == "managerType"


def test_unexpected_errors_become_500(monkeypatch) -> None:
    async def _explode(*_args, **_kwargs):
        raise RuntimeError("connection lost")

    monkeypatch.setattr(team_access, "remove_resource_from_team", _explode)

    with TestClient(app, raise_server_exceptions=False) as local_client:
        response = local_client.post(
            "/api/actions/remove-resource-from-team",
            json={"teamId": "t1", "resourceId": "r1"},
        )

    assert response.status_code == 500
    assert response.json()["error"] == "internal_error"


def test_action_catalogue_lists_all_actions() -> None:
    response = client.get("/api/actions")

    assert response.status_code == 200
    names = [action["name"] for action in response.json()["available_actions"]]
    assert names == [
        "add_user_to_team",
        "remove_user_from_team",
        "assign_manager",
        "remove_manager",
        "assign_resource_to_team",
        "remove_resource_from_team",
    ]


def test_team_member_routes_delegate_to_engine(monkeypatch) -> None:
    calls: list[tuple[str, str, str]] = []

    async def _fake_add(user_id, team_id, **_kwargs):
        calls.append(("add", user_id, team_id))
        return ActionResult("add_user_to_team", ["added"])

    async def _fake_remove(user_id, team_id, **_kwargs):
        calls.append(("remove", user_id, team_id))
        return ActionResult("remove_user_from_team", ["removed"])

    monkeypatch.setattr(team_access, "add_user_to_team", _fake_add)
    monkeypatch.setattr(team_access, "remove_user_from_team", _fake_remove)

    created = client.post("/api/team-members", json={"teamId": "t1", "userId": "u1"})
    deleted = client.delete("/api/team-members/t1/u1")

    assert created.status_code == 201
    assert created.json()["results"] == ["added"]
    assert deleted.status_code == 200
    assert calls == [("add", "u1", "t1"), ("remove", "u1", "t1")]


def test_invariant_audit_endpoint(monkeypatch) -> None:
    async def _no_violations(*_args, **_kwargs):
        return []

    monkeypatch.setattr(access_queries, "find_invariant_violations", _no_violations)

    response = client.get("/api/access/violations")

    assert response.status_code == 200
    assert response.json() == {"consistent": True, "violations": []}


def test_end_to_end_against_sqlite(monkeypatch, org) -> None:
    monkeypatch.setattr(settings, "AUTO_CREATE_TABLES", True)
    monkeypatch.setattr(team_access, "team_locks", TeamLockManager())
    configure_database("sqlite+aiosqlite:///:memory:")
    try:
        with TestClient(app) as local_client:
            u = local_client.portal.call(org.users, "Emma", "Sarah")
            t = local_client.portal.call(org.teams, "APAC")
            r = local_client.portal.call(org.resources, "Family Trust Fund")
            emma, sarah = str(u["Emma"]), str(u["Sarah"])
            apac, trust = str(t["APAC"]), str(r["Family Trust Fund"])

            assigned = local_client.post(
                "/api/actions/assign-manager", json={"userId": emma, "managerId": sarah}
            )
            added = local_client.post(
                "/api/actions/add-user-to-team", json={"userId": emma, "teamId": apac}
            )
            duplicate = local_client.post(
                "/api/actions/add-user-to-team", json={"userId": emma, "teamId": apac}
            )
            local_client.post(
                "/api/actions/assign-resource-to-team",
                json={"teamId": apac, "resourceId": trust},
            )
            members = local_client.get(f"/api/teams/{apac}/members")
            accessors = local_client.get(f"/api/resources/{trust}/accessors")
            report = local_client.get(f"/api/resources/{trust}/access-report")
            audit = local_client.get("/api/access/violations")
    finally:
        reset_database_state()

    assert assigned.status_code == 200
    assert added.json()["results"][1] == f"Added {sarah} to {apac} as MANAGER (via {emma})"
    assert duplicate.status_code == 409
    assert [m["access_type"] for m in members.json()["members"]] == ["direct", "manager"]
    assert accessors.json()["total_users"] == 2
    assert report.json()["total_users"] == 2
    assert audit.json()["consistent"] is True


def test_user_manager_and_team_resource_routes_delegate_to_engine(monkeypatch) -> None:
    calls: list[tuple] = []

    async def _fake_assign_manager(user_id, manager_id, *, manager_type="line_manager", **_kw):
        calls.append(("assign_manager", user_id, manager_id, manager_type))
        return ActionResult("assign_manager", [])

    async def _fake_remove_manager(user_id, manager_id, **_kw):
        calls.append(("remove_manager", user_id, manager_id))
        return ActionResult("remove_manager", [])

    async def _fake_assign_resource(team_id, resource_id, **_kw):
        calls.append(("assign_resource", team_id, resource_id))
        return ActionResult("assign_resource_to_team", [])

    async def _fake_remove_resource(team_id, resource_id, **_kw):
        calls.append(("remove_resource", team_id, resource_id))
        return ActionResult("remove_resource_from_team", [])

    monkeypatch.setattr(team_access, "assign_manager", _fake_assign_manager)
    monkeypatch.setattr(team_access, "remove_manager", _fake_remove_manager)
    monkeypatch.setattr(team_access, "assign_resource_to_team", _fake_assign_resource)
    monkeypatch.setattr(team_access, "remove_resource_from_team", _fake_remove_resource)

    assert client.post("/api/user-managers/u1/m1?manager_type=functional").status_code == 200
    assert client.delete("/api/user-managers/u1/m1").status_code == 200
    assert client.post(
        "/api/team-resources", json={"teamId": "t1", "resourceId": "r1"}
    ).status_code == 201
    assert client.delete("/api/team-resources/t1/r1").status_code == 200

    assert calls == [
        ("assign_manager", "u1", "m1", "functional"),
        ("remove_manager", "u1", "m1"),
        ("assign_resource", "t1", "r1"),
        ("remove_resource", "t1", "r1"),
    ]
