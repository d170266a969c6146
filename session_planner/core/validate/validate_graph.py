from __future__ import annotations

import logging
from collections import defaultdict, deque
from typing import Iterator, Optional

from session_planner.core.errors import GraphIssue
from session_planner.core.model import SessionGraph, ValidityReport


logger = logging.getLogger(__name__)


def validate_graph(graph: SessionGraph) -> ValidityReport:
    """Check a session graph for cycles and dangling references.

    Cycles are walked dependent -> prerequisite, visiting roots and neighbours
    in ascending session number. Each reported cycle is rotated so that its
    smallest session number comes first. Within a single traversal root a
    cycle sharing a node with an already-reported one is skipped.
    """

    cycles = _detect_cycles(_prerequisite_map(graph))
    missing = list(graph.missing_edges)
    valid = not cycles and not missing

    if cycles:
        logger.debug("cycles detected: %s", cycles)
    if missing:
        logger.debug("dangling dependencies: %s", missing)

    return ValidityReport(valid=valid, cycles=cycles, missing_dependencies=missing)


def cyclic_sessions(graph: SessionGraph) -> set[int]:
    """Every session that can reach itself (self-loops included)."""
    prereqs = _prerequisite_map(graph)
    out: set[int] = set()
    for start in graph.nodes_by_number:
        q: deque[int] = deque(prereqs.get(start, []))
        seen: set[int] = set()
        while q:
            cur = q.popleft()
            if cur == start:
                out.add(start)
                break
            if cur in seen:
                continue
            seen.add(cur)
            q.extend(prereqs.get(cur, []))
    return out


def cycle_edges(report: ValidityReport) -> set[tuple[int, int]]:
    """Edges (prerequisite, dependent) that close a reported cycle."""
    out: set[tuple[int, int]] = set()
    for cycle in report.cycles:
        # cycle[i] depends on cycle[i + 1]; the last one depends on the first.
        for i, dependent in enumerate(cycle):
            prerequisite = cycle[(i + 1) % len(cycle)]
            out.add((prerequisite, dependent))
    return out


def graph_issues(
    graph: SessionGraph, report: ValidityReport, *, file: Optional[str] = None
) -> list[GraphIssue]:
    issues: list[GraphIssue] = []
    for cycle in report.cycles:
        chain = " -> ".join(str(n) for n in cycle + cycle[:1])
        issues.append(
            GraphIssue(
                code="G_CYCLE",
                message=f"dependency cycle detected: {chain}",
                file=file,
                path=f"session {cycle[0]}",
            )
        )
    for session, requires in report.missing_dependencies:
        issues.append(
            GraphIssue(
                code="G_MISSING_DEPENDENCY",
                message=f"session {session} depends on unknown session {requires}",
                file=file,
                path=f"session {session}",
            )
        )
    for number in graph.duplicate_numbers:
        issues.append(
            GraphIssue(
                code="G_DUPLICATE_SESSION",
                message=f"session number {number} declared more than once (first declaration kept)",
                file=file,
                path=f"session {number}",
            )
        )
    return issues


def _prerequisite_map(graph: SessionGraph) -> dict[int, list[int]]:
    prereqs: dict[int, list[int]] = defaultdict(list)
    for prerequisite, dependent in graph.edges:
        prereqs[dependent].append(prerequisite)
    return {n: sorted(set(prereqs.get(n, []))) for n in graph.nodes_by_number}


def _detect_cycles(prereqs: dict[int, list[int]]) -> list[list[int]]:
    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[int, int] = {n: WHITE for n in prereqs}
    emitted: set[tuple[int, ...]] = set()
    out: list[list[int]] = []

    for root in sorted(prereqs):
        if state[root] != WHITE:
            continue

        reported_here: set[int] = set()
        stack: list[int] = [root]
        pending: list[Iterator[int]] = [iter(prereqs[root])]
        state[root] = GRAY

        while stack:
            v = next(pending[-1], None)
            if v is None:
                state[stack.pop()] = BLACK
                pending.pop()
                continue

            if state[v] == GRAY:
                cycle = _canonical(stack[stack.index(v):])
                key = tuple(cycle)
                if key in emitted or reported_here.intersection(cycle):
                    continue
                emitted.add(key)
                reported_here.update(cycle)
                out.append(cycle)
            elif state[v] == WHITE:
                state[v] = GRAY
                stack.append(v)
                pending.append(iter(prereqs[v]))

    return sorted(out)


def _canonical(cycle: list[int]) -> list[int]:
    start = cycle.index(min(cycle))
    return cycle[start:] + cycle[:start]
