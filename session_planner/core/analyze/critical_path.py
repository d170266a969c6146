from __future__ import annotations

import heapq
import logging
from collections import defaultdict
from typing import Optional

from session_planner.core.model import SessionGraph, ValidityReport
from session_planner.core.validate.validate_graph import cycle_edges, validate_graph


logger = logging.getLogger(__name__)


def critical_path(graph: SessionGraph, report: Optional[ValidityReport] = None) -> list[int]:
    """Longest duration-weighted root-to-leaf chain of sessions.

    On an invalid graph the edges closing each reported cycle are dropped
    first. Sessions still caught in a cycle never become ready in the
    topological pass and are left out, so the walk always terminates.

    Ties: the predecessor with the lowest session number wins, and among
    equally long paths the one ending at the lowest session number wins.
    """

    if not graph.nodes_by_number:
        return []

    if report is None:
        report = validate_graph(graph)
    dropped = cycle_edges(report) if report.cycles else set()

    prereqs: dict[int, set[int]] = defaultdict(set)
    dependents: dict[int, set[int]] = defaultdict(set)
    for prerequisite, dependent in graph.edges:
        if (prerequisite, dependent) in dropped:
            continue
        prereqs[dependent].add(prerequisite)
        dependents[prerequisite].add(dependent)

    indegree = {n: len(prereqs[n]) for n in graph.nodes_by_number}
    ready = [n for n, d in indegree.items() if d == 0]
    heapq.heapify(ready)

    total: dict[int, float] = {}
    best_pred: dict[int, Optional[int]] = {}

    while ready:
        n = heapq.heappop(ready)
        pred: Optional[int] = None
        for p in sorted(prereqs[n]):
            if pred is None or total[p] > total[pred]:
                pred = p
        best_pred[n] = pred
        total[n] = graph.nodes_by_number[n].duration_hours + (total[pred] if pred is not None else 0.0)

        for d in dependents[n]:
            indegree[d] -= 1
            if indegree[d] == 0:
                heapq.heappush(ready, d)

    if not total:
        return []

    if len(total) < len(graph.nodes_by_number):
        blocked = sorted(set(graph.nodes_by_number) - set(total))
        logger.debug("critical path skips sessions blocked by cycles: %s", blocked)

    leaves = [n for n in total if not any(d in total for d in dependents[n])]
    end = min(leaves, key=lambda n: (-total[n], n))

    path: list[int] = []
    cur: Optional[int] = end
    while cur is not None:
        path.append(cur)
        cur = best_pred[cur]
    path.reverse()

    logger.debug("critical path %s (%.2fh)", path, total[end])
    return path


def path_hours(graph: SessionGraph, path: list[int]) -> float:
    return sum(graph.nodes_by_number[n].duration_hours for n in path)
