import uuid

from models.database import get_session
from models.user_manager import UserManager
from services import hierarchy
from services.hierarchy import ManagerGraph


def _ids(*names: str) -> dict[str, uuid.UUID]:
    return {name: uuid.uuid4() for name in names}


def test_manager_chain_is_nearest_first_and_records_immediate_link() -> None:
    u = _ids("emma", "sarah", "john")
    graph = ManagerGraph([(u["emma"], u["sarah"]), (u["sarah"], u["john"])])

    chain = hierarchy.manager_chain(graph, u["emma"], max_depth=3)

    assert [link.manager_id for link in chain] == [u["sarah"], u["john"]]
    assert [link.via for link in chain] == [u["emma"], u["sarah"]]
    assert [link.hops for link in chain] == [1, 2]


def test_managers_of_respects_depth_limit() -> None:
    u = _ids("a", "b", "c", "d")
    graph = ManagerGraph([(u["a"], u["b"]), (u["b"], u["c"]), (u["c"], u["d"])])

    assert hierarchy.managers_of(graph, u["a"], max_depth=2) == [u["b"], u["c"]]
    assert hierarchy.managers_of(graph, u["a"], max_depth=0) == []


def test_managers_of_reports_every_parent_once_in_multi_parent_graph() -> None:
    u = _ids("a", "b", "c", "top")
    graph = ManagerGraph(
        [(u["a"], u["b"]), (u["a"], u["c"]), (u["b"], u["top"]), (u["c"], u["top"])]
    )

    assert hierarchy.managers_of(graph, u["a"], max_depth=3) == [u["b"], u["c"], u["top"]]


def test_traversal_terminates_on_cyclic_data() -> None:
    u = _ids("a", "b")
    graph = ManagerGraph([(u["a"], u["b"]), (u["b"], u["a"])])

    assert hierarchy.managers_of(graph, u["a"], max_depth=10) == [u["b"]]
    assert hierarchy.depth_of(graph, u["a"], max_iterations=10) == 1


def test_would_create_cycle_checks_transitive_paths() -> None:
    u = _ids("a", "b", "c")
    # b manages a, c manages b
    graph = ManagerGraph([(u["a"], u["b"]), (u["b"], u["c"])])

    assert hierarchy.would_create_cycle(graph, u["b"], u["a"])
    assert hierarchy.would_create_cycle(graph, u["c"], u["a"])
    assert hierarchy.would_create_cycle(graph, u["a"], u["a"])
    assert not hierarchy.would_create_cycle(graph, u["a"], u["c"])


def test_depth_follows_the_longest_path_not_the_first() -> None:
    u = _ids("a", "short", "long1", "long2", "long3")
    graph = ManagerGraph(
        [
            (u["a"], u["short"]),
            (u["a"], u["long1"]),
            (u["long1"], u["long2"]),
            (u["long2"], u["long3"]),
        ]
    )

    assert hierarchy.depth_of(graph, u["a"], max_iterations=10) == 3
    assert hierarchy.depth_below(graph, u["long3"], max_iterations=10) == 3
    assert hierarchy.depth_below(graph, u["a"], max_iterations=10) == 0


def test_chain_length_with_edge_joins_both_sides() -> None:
    u = _ids("a", "b", "c", "d")
    # b manages a; d manages c
    graph = ManagerGraph([(u["a"], u["b"]), (u["c"], u["d"])])

    # new edge: c manages b -> a, b, c, d is three hops
    assert hierarchy.chain_length_with_edge(graph, u["b"], u["c"], max_iterations=10) == 3


def test_subordinates_of_is_transitive() -> None:
    u = _ids("emma", "david", "sarah", "john")
    graph = ManagerGraph(
        [(u["emma"], u["sarah"]), (u["david"], u["sarah"]), (u["sarah"], u["john"])]
    )

    assert hierarchy.subordinates_of(graph, u["john"]) == [u["sarah"], u["emma"], u["david"]]
    assert hierarchy.subordinates_of(graph, u["john"], max_depth=1) == [u["sarah"]]


def test_graph_edits_return_new_graphs() -> None:
    u = _ids("a", "b")
    graph = ManagerGraph()

    with_edge = graph.with_edge(u["a"], u["b"])
    without_edge = with_edge.without_edge(u["a"], u["b"])

    assert len(graph) == 0
    assert with_edge.has_edge(u["a"], u["b"])
    assert with_edge.direct_subordinates(u["b"]) == [u["a"]]
    assert not without_edge.has_edge(u["a"], u["b"])


def test_get_user_managers_returns_rows_in_chain_order(run_in_db, org) -> None:
    async def _scenario():
        users = await org.users("Emma", "Sarah", "John")
        async with get_session() as session:
            session.add(UserManager(user_id=users["Emma"], manager_id=users["Sarah"]))
            session.add(UserManager(user_id=users["Sarah"], manager_id=users["John"]))
            await session.commit()
        async with get_session() as session:
            managers = await hierarchy.get_user_managers(session, users["Emma"], 3)
            graph = await hierarchy.load_manager_graph(session)
        return [user.name for user in managers], len(graph)

    names, edge_count = run_in_db(_scenario)

    assert names == ["Sarah", "John"]
    assert edge_count == 2
