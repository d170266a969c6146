from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from session_planner.core.analyze.critical_path import critical_path
from session_planner.core.analyze.parallel_groups import find_parallel_groups
from session_planner.core.model import (
    DependencyDiagram,
    ParallelGroup,
    SessionGraph,
    SessionNode,
    ValidityReport,
)
from session_planner.core.validate.validate_graph import validate_graph


DIRECTIONS: tuple[str, ...] = ("TB", "BT", "LR", "RL")

DOMAIN_COLORS: dict[str, tuple[str, str]] = {
    # domain: (fill, stroke)
    "backend": ("#e1f5fe", "#0277bd"),
    "frontend": ("#f3e5f5", "#7b1fa2"),
    "mobile": ("#e8f5e9", "#388e3c"),
    "e2e": ("#fff3e0", "#ef6c00"),
    "infrastructure": ("#fce4ec", "#c2185b"),
}
LEGEND_LABELS: dict[str, str] = {
    "backend": "Backend",
    "frontend": "Frontend",
    "mobile": "Mobile",
    "e2e": "E2E",
    "infrastructure": "Infrastructure",
}

CRITICAL_NODE_STYLE = "stroke:#f44336,stroke-width:4px"
CRITICAL_LINK_STYLE = "stroke:#f44336,stroke-width:3px"

_STRIPPED = re.compile(r"[\[\]{}()|`]")
_SPACES = re.compile(r"\s+")


@dataclass(frozen=True)
class DiagramOptions:
    direction: str = "TB"
    highlight_critical_path: bool = False
    show_parallel_groups: bool = False
    color_by_domain: bool = False
    show_node_shapes: bool = False
    max_title_length: int = 40
    wrap_in_code_block: bool = False
    include_legend: bool = False

    def __post_init__(self) -> None:
        if self.direction not in DIRECTIONS:
            raise ValueError(f"direction must be one of {list(DIRECTIONS)}, got {self.direction!r}")
        if self.max_title_length < 4:
            raise ValueError("max_title_length must be at least 4")


def clean_title(title: str) -> str:
    """Drop characters that would close an unquoted `[...]` node label."""
    text = _STRIPPED.sub(" ", title.replace('"', "'"))
    return _SPACES.sub(" ", text).strip()


def encode_title(title: str) -> str:
    return title.replace("#", "#35;").replace("<", "&lt;").replace(">", "&gt;")


def escape_title(title: str) -> str:
    """Make a title safe inside an unquoted `[...]` node label."""
    return encode_title(clean_title(title))


def truncate_title(title: str, max_length: int) -> str:
    if len(title) <= max_length:
        return title
    return title[: max_length - 3].rstrip() + "..."


def node_id(number: int) -> str:
    return f"S{number}"


def render_mermaid(
    graph: SessionGraph,
    path: list[int],
    groups: list[ParallelGroup],
    options: DiagramOptions,
) -> str:
    lines: list[str] = [f"flowchart {options.direction}"]

    if not graph.nodes_by_number:
        lines.append("    %% No sessions to display")
        return _wrap(lines, options)

    if options.color_by_domain:
        lines.append("")
        lines.append("    %% Domain styles")
        for domain, (fill, stroke) in DOMAIN_COLORS.items():
            lines.append(f"    classDef {domain} fill:{fill},stroke:{stroke},stroke-width:2px")

    lines.append("")
    if options.show_parallel_groups and groups:
        grouped: set[int] = set()
        for i, group in enumerate(groups, start=1):
            lines.append(f'    subgraph parallel{i}["Parallel Group {i}"]')
            for number in group.sessions:
                lines.append(f"        {_format_node(graph, graph.nodes_by_number[number], options)}")
                grouped.add(number)
            lines.append("    end")

        rest = [n for n in graph.nodes_by_number.values() if n.number not in grouped]
        if rest:
            lines.append("")
            lines.append("    %% Individual sessions")
            for node in rest:
                lines.append(f"    {_format_node(graph, node, options)}")
    else:
        lines.append("    %% Session nodes")
        for node in graph.nodes_by_number.values():
            lines.append(f"    {_format_node(graph, node, options)}")

    path_links = set(zip(path, path[1:]))
    critical_links: list[int] = []
    if graph.edges:
        lines.append("")
        lines.append("    %% Dependencies")
        for index, (prerequisite, dependent) in enumerate(graph.edges):
            lines.append(f"    {node_id(prerequisite)} --> {node_id(dependent)}")
            if (prerequisite, dependent) in path_links:
                critical_links.append(index)

    if options.color_by_domain:
        lines.append("")
        lines.append("    %% Apply domain classes")
        for node in graph.nodes_by_number.values():
            lines.append(f"    class {node_id(node.number)} {node.domain_bucket}")

    if options.highlight_critical_path and path:
        lines.append("")
        lines.append("    %% Critical path highlighting")
        for number in path:
            lines.append(f"    style {node_id(number)} {CRITICAL_NODE_STYLE}")
        if critical_links:
            joined = ",".join(str(i) for i in critical_links)
            lines.append(f"    linkStyle {joined} {CRITICAL_LINK_STYLE}")

    if options.include_legend and options.color_by_domain:
        lines.append("")
        lines.append("    %% Legend")
        lines.append("    subgraph Legend")
        for i, (domain, label) in enumerate(LEGEND_LABELS.items(), start=1):
            lines.append(f"        L{i}[{label}]:::{domain}")
        lines.append("    end")

    return _wrap(lines, options)


def generate_dependency_diagram(
    graph: SessionGraph,
    options: Optional[DiagramOptions] = None,
    *,
    report: Optional[ValidityReport] = None,
    path: Optional[list[int]] = None,
    groups: Optional[list[ParallelGroup]] = None,
) -> DependencyDiagram:
    """Render a session graph as a Mermaid flowchart plus its analysis.

    Output depends only on the graph and options, so identical input yields
    byte-identical text.
    """

    opts = options or DiagramOptions()
    if path is None:
        path = critical_path(graph, report or validate_graph(graph))
    if groups is None:
        groups = find_parallel_groups(graph)

    return DependencyDiagram(
        mermaid=render_mermaid(graph, path, groups, opts),
        critical_path=list(path),
        parallel_groups=list(groups),
        total_nodes=len(graph.nodes_by_number),
        total_edges=len(graph.edges),
    )


def _format_node(graph: SessionGraph, node: SessionNode, options: DiagramOptions) -> str:
    # entities are added after truncation so a cut never splits one
    label = truncate_title(clean_title(node.title) or f"Session {node.number}", options.max_title_length)
    label = encode_title(label)
    nid = node_id(node.number)

    if not options.show_node_shapes:
        return f"{nid}[{label}]"

    is_root = not graph.prerequisites(node.number)
    is_leaf = not graph.dependents(node.number)
    if is_root and is_leaf:
        return f"{nid}(({label}))"
    if is_root:
        return f"{nid}([{label}])"
    if is_leaf:
        return f"{nid}{{{{{label}}}}}"
    return f"{nid}[{label}]"


def _wrap(lines: list[str], options: DiagramOptions) -> str:
    text = "\n".join(lines)
    if options.wrap_in_code_block:
        return f"```mermaid\n{text}\n```"
    return text
