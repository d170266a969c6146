import pytest

from session_planner.core.graph.build_graph import build_graph
from session_planner.core.io.load_sessions import load_sessions
from session_planner.core.render.mermaid import (
    DiagramOptions,
    escape_title,
    generate_dependency_diagram,
    truncate_title,
)


def _from_file(path):
    plan = load_sessions(path)
    graph, errors = build_graph(plan["sessions"], file=plan["__file__"])
    assert errors == []
    return graph


def _graph(records):
    graph, errors = build_graph(records)
    assert errors == []
    return graph


def test_default_rendering_is_exact():
    result = generate_dependency_diagram(_from_file("examples/basic-plan.yaml"))
    assert result.mermaid == "\n".join(
        [
            "flowchart TB",
            "",
            "    %% Session nodes",
            "    S1[Project Setup]",
            "    S2[Database Models]",
            "    S3[API Endpoints]",
            "",
            "    %% Dependencies",
            "    S1 --> S2",
            "    S2 --> S3",
        ]
    )
    assert result.total_nodes == 3
    assert result.total_edges == 2
    assert result.critical_path == [1, 2, 3]


def test_critical_path_highlighting():
    graph = _from_file("examples/basic-plan.yaml")
    text = generate_dependency_diagram(graph, DiagramOptions(highlight_critical_path=True)).mermaid
    assert "    %% Critical path highlighting" in text
    for n in (1, 2, 3):
        assert f"    style S{n} stroke:#f44336,stroke-width:4px" in text
    assert text.endswith("    linkStyle 0,1 stroke:#f44336,stroke-width:3px")


def test_highlighted_links_follow_edge_order():
    graph = _from_file("examples/parallel-plan.yaml")
    text = generate_dependency_diagram(graph, DiagramOptions(highlight_critical_path=True)).mermaid
    # edges: 1->2, 1->3, 1->4, 2->5, 3->5, 4->5; path 1 -> 2 -> 5
    assert "    linkStyle 0,3 stroke:#f44336,stroke-width:3px" in text
    assert "style S3" not in text


def test_titles_escaped_and_truncated():
    assert escape_title('Fix "quoted" thing <b>') == "Fix 'quoted' thing &lt;b&gt;"
    assert escape_title("Setup [core] (v2) | {x}") == "Setup core v2 x"
    assert truncate_title("A very long title", 10) == "A very..."
    assert truncate_title("Short", 10) == "Short"

    graph = _graph([{"number": 1, "title": "A very long title", "dependencies": []}])
    text = generate_dependency_diagram(graph, DiagramOptions(max_title_length=10)).mermaid
    assert "    S1[A very...]" in text


def test_title_with_only_brackets_falls_back_to_number():
    graph = _graph([{"number": 7, "title": "[]", "dependencies": []}])
    assert "    S7[Session 7]" in generate_dependency_diagram(graph).mermaid


def test_code_block():
    graph = _from_file("examples/basic-plan.yaml")
    text = generate_dependency_diagram(graph, DiagramOptions(wrap_in_code_block=True)).mermaid
    assert text.startswith("```mermaid\nflowchart TB\n")
    assert text.endswith("\n```")


def test_direction():
    graph = _from_file("examples/basic-plan.yaml")
    assert generate_dependency_diagram(graph, DiagramOptions(direction="LR")).mermaid.startswith(
        "flowchart LR\n"
    )


def test_node_shapes():
    graph = _from_file("examples/parallel-plan.yaml")
    text = generate_dependency_diagram(graph, DiagramOptions(show_node_shapes=True)).mermaid
    assert "    S1([Project Setup])" in text
    assert "    S2[Backend Models]" in text
    assert "    S5{{Integration Testing}}" in text

    lone = _graph([{"number": 1, "title": "Alone", "dependencies": []}])
    assert "    S1((Alone))" in generate_dependency_diagram(
        lone, DiagramOptions(show_node_shapes=True)
    ).mermaid


def test_parallel_subgraphs():
    graph = _from_file("examples/parallel-plan.yaml")
    lines = generate_dependency_diagram(graph, DiagramOptions(show_parallel_groups=True)).mermaid.split("\n")
    start = lines.index('    subgraph parallel1["Parallel Group 1"]')
    assert lines[start + 1 : start + 5] == [
        "        S2[Backend Models]",
        "        S3[Frontend Setup]",
        "        S4[Mobile Setup]",
        "    end",
    ]
    rest = lines.index("    %% Individual sessions")
    assert lines[rest + 1 : rest + 3] == ["    S1[Project Setup]", "    S5[Integration Testing]"]


def test_domain_colors_and_legend():
    graph = _graph(
        [
            {"number": 1, "title": "API", "domain": "backend", "dependencies": []},
            {"number": 2, "title": "Misc", "dependencies": [1]},
        ]
    )
    opts = DiagramOptions(color_by_domain=True, include_legend=True)
    text = generate_dependency_diagram(graph, opts).mermaid
    assert "    classDef backend fill:#e1f5fe,stroke:#0277bd,stroke-width:2px" in text
    assert "    class S1 backend" in text
    # no domain falls into the default bucket
    assert "    class S2 infrastructure" in text
    assert "    subgraph Legend" in text
    assert "        L4[E2E]:::e2e" in text

    plain = generate_dependency_diagram(graph, DiagramOptions(include_legend=True)).mermaid
    assert "Legend" not in plain
    assert "classDef" not in plain


def test_deterministic_output():
    graph = _from_file("examples/complex-plan.json")
    opts = DiagramOptions(
        highlight_critical_path=True,
        show_parallel_groups=True,
        color_by_domain=True,
        show_node_shapes=True,
        include_legend=True,
    )
    first = generate_dependency_diagram(graph, opts)
    again = generate_dependency_diagram(_from_file("examples/complex-plan.json"), opts)
    assert first.mermaid == again.mermaid
    assert first.critical_path == [1, 4, 5, 7, 8]


def test_empty_graph():
    result = generate_dependency_diagram(_graph([]))
    assert result.mermaid == "flowchart TB\n    %% No sessions to display"
    assert result.total_nodes == 0
    assert result.total_edges == 0
    assert result.critical_path == []


def test_edges_deduplicated_and_dangling_skipped():
    graph = _graph(
        [
            {"number": 1, "title": "A", "dependencies": []},
            {"number": 2, "title": "B", "dependencies": [1, 1, 9]},
        ]
    )
    result = generate_dependency_diagram(graph)
    assert result.total_edges == 1
    assert result.mermaid.count("-->") == 1
    assert "S9" not in result.mermaid


def test_invalid_options():
    with pytest.raises(ValueError):
        DiagramOptions(direction="UP")
    with pytest.raises(ValueError):
        DiagramOptions(max_title_length=3)


def test_to_dict():
    out = generate_dependency_diagram(_from_file("examples/parallel-plan.yaml")).to_dict()
    assert out["criticalPath"] == [1, 2, 5]
    assert out["totalNodes"] == 5
    assert out["totalEdges"] == 6
    assert out["parallelGroups"][0]["sessions"] == [2, 3, 4]


def test_hash_encoded_as_entity_code():
    assert escape_title("Fix #12; retry") == "Fix #35;12; retry"
    graph = _graph([{"number": 1, "title": "Fix #12; retry", "dependencies": []}])
    assert "    S1[Fix #35;12; retry]" in generate_dependency_diagram(graph).mermaid


def test_truncation_never_splits_an_entity():
    graph = _graph([{"number": 1, "title": "Use <b> tags everywhere", "dependencies": []}])
    text = generate_dependency_diagram(graph, DiagramOptions(max_title_length=8)).mermaid
    # cut on the raw title ("Use <...") then encode
    assert "    S1[Use &lt;...]" in text
