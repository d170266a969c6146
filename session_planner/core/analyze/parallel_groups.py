from __future__ import annotations

import logging

from session_planner.core.durations import format_hours
from session_planner.core.model import ParallelGroup, SessionGraph
from session_planner.core.validate.validate_graph import cyclic_sessions


logger = logging.getLogger(__name__)


def find_parallel_groups(graph: SessionGraph) -> list[ParallelGroup]:
    """Group sessions that declare exactly the same prerequisites.

    Members of a group cannot be ordered relative to each other unless a
    cycle is involved, so sessions lying on a cycle are left out entirely.
    Each group saves the sum of every member's duration except the longest.
    """

    on_cycle = cyclic_sessions(graph)
    if on_cycle:
        logger.debug("sessions on cycles excluded from parallel groups: %s", sorted(on_cycle))

    by_prereqs: dict[tuple[int, ...], list[int]] = {}
    for number, node in graph.nodes_by_number.items():
        if number in on_cycle:
            continue
        key = tuple(sorted(node.dependencies))
        by_prereqs.setdefault(key, []).append(number)

    groups: list[ParallelGroup] = []
    for key, members in by_prereqs.items():
        if len(members) < 2:
            continue
        members = sorted(members)
        hours = [graph.nodes_by_number[n].duration_hours for n in members]
        savings = sum(hours) - max(hours)
        groups.append(
            ParallelGroup(
                sessions=members,
                reason=_reason(graph, key, members),
                time_savings=format_hours(savings),
                time_savings_hours=savings,
            )
        )

    groups.sort(key=lambda g: g.sessions[0])
    return groups


def total_savings_hours(groups: list[ParallelGroup]) -> float:
    return sum(g.time_savings_hours for g in groups)


def _reason(graph: SessionGraph, key: tuple[int, ...], members: list[int]) -> str:
    if not key:
        return "Sessions have no dependencies and can start immediately"

    deps = ", ".join(str(k) for k in key)
    domains = sorted({d for d in (graph.nodes_by_number[n].domain for n in members) if d})
    if len(domains) > 1:
        return (
            f"Sessions work on different domains ({', '.join(domains)}) "
            f"and share dependencies [{deps}]"
        )
    return f"Sessions share dependencies [{deps}] and can run concurrently"
