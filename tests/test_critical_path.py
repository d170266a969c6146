from session_planner.core.analyze.critical_path import critical_path, path_hours
from session_planner.core.graph.build_graph import build_graph
from session_planner.core.io.load_sessions import load_sessions
from session_planner.core.validate.validate_graph import validate_graph


def _graph(*rows):
    records = []
    for row in rows:
        number, deps = row[0], row[1]
        rec = {"number": number, "title": f"Session {number}", "dependencies": list(deps)}
        if len(row) > 2:
            rec["estimatedTime"] = row[2]
        records.append(rec)
    graph, errors = build_graph(records)
    assert errors == []
    return graph


def _all_root_to_leaf_paths(graph):
    roots = [n for n in graph.nodes_by_number if not graph.prerequisites(n)]
    out = []

    def walk(n, acc):
        nxt = graph.dependents(n)
        if not nxt:
            out.append(acc + [n])
        for d in nxt:
            walk(d, acc + [n])

    for r in roots:
        walk(r, [])
    return out


def test_empty_graph():
    graph, _ = build_graph([])
    assert critical_path(graph) == []


def test_single_node():
    assert critical_path(_graph((7, []))) == [7]


def test_linear_chain():
    graph = _graph((1, [], "3h"), (2, [1], "3h"), (3, [2], "3h"))
    assert critical_path(graph) == [1, 2, 3]
    assert path_hours(graph, [1, 2, 3]) == 9.0


def test_complex_plan_longest_path():
    plan = load_sessions("examples/complex-plan.json")
    graph, _ = build_graph(plan["sessions"])
    path = critical_path(graph, validate_graph(graph))
    assert path == [1, 4, 5, 7, 8]
    assert path_hours(graph, path) == 19.0


def test_path_dominates_every_other_root_to_leaf_path():
    plan = load_sessions("examples/complex-plan.json")
    graph, _ = build_graph(plan["sessions"])
    best = path_hours(graph, critical_path(graph))
    for p in _all_root_to_leaf_paths(graph):
        assert best >= path_hours(graph, p)


def test_weights_beat_length():
    graph = _graph((1, [], "1h"), (2, [1], "1h"), (3, [2], "1h"), (4, [], "10h"))
    assert critical_path(graph) == [4]


def test_ties_prefer_lowest_numbers():
    graph = _graph((1, [], "2h"), (2, [], "2h"), (3, [1, 2], "1h"))
    assert critical_path(graph) == [1, 3]

    graph = _graph((1, [], "2h"), (2, [], "2h"))
    assert critical_path(graph) == [1]


def test_path_ends_on_a_leaf_even_with_zero_duration():
    graph = _graph((1, [], "2h"), (2, [1], "0h"))
    assert critical_path(graph) == [1, 2]


def test_dangling_dependencies_are_not_walked():
    graph = _graph((1, [], "1h"), (2, [10], "5h"))
    assert critical_path(graph) == [2]


def test_cycle_edges_dropped_on_invalid_graph():
    graph = _graph((1, [3]), (2, [1]), (3, [2]), (4, [3], "1h"))
    report = validate_graph(graph)
    assert report.valid is False
    # the 1->3->2 cycle is broken, 3 -> 4 remains walkable
    assert critical_path(graph, report) == [3, 4]


def test_unreported_cycle_nodes_left_out():
    graph = _graph((1, [2, 3]), (2, [1]), (3, [1]))
    report = validate_graph(graph)
    assert report.cycles == [[1, 2]]
    assert critical_path(graph, report) == [2]
