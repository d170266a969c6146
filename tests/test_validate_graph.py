from session_planner.core.graph.build_graph import build_graph
from session_planner.core.io.load_sessions import load_sessions
from session_planner.core.validate.validate_graph import (
    cycle_edges,
    cyclic_sessions,
    graph_issues,
    validate_graph,
)


def _graph(*pairs):
    records = [{"number": n, "title": f"Session {n}", "dependencies": list(d)} for n, d in pairs]
    graph, errors = build_graph(records)
    assert errors == []
    return graph


def test_validate_happy_path():
    plan = load_sessions("examples/basic-plan.yaml")
    graph, _ = build_graph(plan["sessions"])
    report = validate_graph(graph)
    assert report.valid is True
    assert report.cycles == []
    assert report.missing_dependencies == []


def test_three_node_cycle():
    report = validate_graph(_graph((1, [3]), (2, [1]), (3, [2])))
    assert report.valid is False
    assert len(report.cycles) == 1
    assert set(report.cycles[0]) == {1, 2, 3}
    # walked dependent -> prerequisite, smallest number first
    assert report.cycles[0] == [1, 3, 2]


def test_missing_dependency_reported():
    report = validate_graph(_graph((1, []), (2, [10])))
    assert report.valid is False
    assert report.missing_dependencies == [(2, 10)]
    assert report.to_dict()["missingDependencies"] == [{"session": 2, "requires": 10}]


def test_self_loop_is_a_cycle():
    report = validate_graph(_graph((1, [1]), (2, [1])))
    assert report.valid is False
    assert report.cycles == [[1]]


def test_independent_cycles_all_found():
    report = validate_graph(_graph((1, [2]), (2, [1]), (3, []), (4, [5]), (5, [4])))
    assert report.cycles == [[1, 2], [4, 5]]


def test_overlapping_cycles_report_shared_node_once_per_root():
    # 1 <-> 2 and 1 <-> 3 share session 1
    report = validate_graph(_graph((1, [2, 3]), (2, [1]), (3, [1])))
    assert report.valid is False
    assert report.cycles == [[1, 2]]


def test_cycle_detection_is_order_independent():
    pairs = [(1, [4]), (2, [1]), (3, [2]), (4, [3]), (5, [1]), (6, [9])]
    forward = validate_graph(_graph(*pairs))
    backward = validate_graph(_graph(*reversed(pairs)))
    assert forward.valid is backward.valid is False
    assert [sorted(c) for c in forward.cycles] == [sorted(c) for c in backward.cycles]
    assert forward.missing_dependencies == backward.missing_dependencies


def test_validation_is_idempotent():
    graph = _graph((1, [3]), (2, [1]), (3, [2]))
    assert validate_graph(graph) == validate_graph(graph)


def test_cycle_edges_close_each_cycle():
    report = validate_graph(_graph((1, [3]), (2, [1]), (3, [2])))
    assert cycle_edges(report) == {(3, 1), (2, 3), (1, 2)}


def test_cyclic_sessions_excludes_downstream_nodes():
    graph = _graph((1, [2]), (2, [1]), (3, [1]), (4, [4]))
    assert cyclic_sessions(graph) == {1, 2, 4}


def test_graph_issues_codes():
    graph, _ = build_graph(
        [
            {"number": 1, "title": "a", "dependencies": [2]},
            {"number": 2, "title": "b", "dependencies": [1, 7]},
            {"number": 2, "title": "dup", "dependencies": []},
        ]
    )
    report = validate_graph(graph)
    codes = sorted(i.code for i in graph_issues(graph, report, file="plan.yaml"))
    assert codes == ["G_CYCLE", "G_DUPLICATE_SESSION", "G_MISSING_DEPENDENCY"]
