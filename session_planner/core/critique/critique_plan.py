from __future__ import annotations

import logging
import re
import statistics
from typing import Optional

from session_planner.core.analyze.critical_path import critical_path
from session_planner.core.analyze.parallel_groups import find_parallel_groups, total_savings_hours
from session_planner.core.critique.scoring_config import CritiqueConfig
from session_planner.core.durations import format_hours
from session_planner.core.model import (
    IssueCategory,
    Likelihood,
    ParallelGroup,
    PlanCritique,
    Risk,
    RiskCategory,
    RiskSeverity,
    SessionCritique,
    SessionGraph,
    SessionIssue,
    SessionNode,
    Severity,
    ValidityReport,
)
from session_planner.core.render.mermaid import DiagramOptions, generate_dependency_diagram
from session_planner.core.validate.validate_graph import validate_graph


logger = logging.getLogger(__name__)

CATEGORY_RECOMMENDATIONS: dict[IssueCategory, str] = {
    "scope": "Split oversized sessions and keep each to 3-5 focused, measurable objectives",
    "dependencies": "Reorder sessions so each one depends only on earlier, existing sessions",
    "testing": "Add explicit testing objectives (unit, integration or E2E) to every session",
    "timeline": "Add time estimates and rebalance sessions that run far beyond the plan median",
}

RISK_MITIGATIONS: dict[RiskCategory, str] = {
    "dependency": "Break circular dependency chains and correct references to sessions that do not exist",
    "scope": "Split large sessions into smaller, focused units",
    "technical": "Add dedicated E2E testing and QA sessions",
    "timeline": "Re-estimate outlier sessions and spread work more evenly across the plan",
}

_WORD_RE = re.compile(r"[a-z0-9]+")


def critique_plan(
    graph: SessionGraph,
    config: Optional[CritiqueConfig] = None,
    *,
    diagram_options: Optional[DiagramOptions] = None,
) -> PlanCritique:
    """Score a session graph and explain what is wrong with it.

    Advisory only: the graph is read, never modified. When diagram_options is
    given the result also carries the rendered flowchart.
    """

    cfg = config or CritiqueConfig()
    report = validate_graph(graph)

    if not graph.nodes_by_number:
        return _empty_critique(report, graph, diagram_options)

    path = critical_path(graph, report)
    groups = find_parallel_groups(graph)
    sessions = critique_sessions(graph, report, cfg)
    score, strengths, weaknesses = overall_score(graph, report, sessions, groups, cfg)

    diagram = None
    if diagram_options is not None:
        diagram = generate_dependency_diagram(
            graph, diagram_options, report=report, path=path, groups=groups
        )

    logger.debug("critique score=%d for %d sessions", score, len(graph))

    return PlanCritique(
        score=score,
        strengths=strengths,
        weaknesses=weaknesses,
        sessions=sessions,
        dependencies=report,
        opportunities=groups,
        estimated_time_savings=format_hours(total_savings_hours(groups)),
        risks=assess_risks(graph, report, sessions, cfg),
        recommendations=recommendations(graph, report, sessions, groups),
        critical_path=path,
        diagram=diagram,
    )


def critique_sessions(
    graph: SessionGraph, report: ValidityReport, cfg: CritiqueConfig
) -> list[SessionCritique]:
    durations = [n.duration_hours for n in graph.nodes_by_number.values()]
    median = statistics.median(durations) if durations else 0.0
    check_timeline = len(durations) >= cfg.timeline_min_sessions and median > 0

    cycle_of: dict[int, list[int]] = {}
    for cycle in report.cycles:
        for n in cycle:
            cycle_of.setdefault(n, cycle)

    out: list[SessionCritique] = []
    for number, node in graph.nodes_by_number.items():
        issues: list[SessionIssue] = []
        suggestions: list[str] = []

        def add(severity: Severity, category: IssueCategory, description: str, suggestion: str) -> None:
            issues.append(SessionIssue(severity=severity, category=category, description=description))
            if suggestion not in suggestions:
                suggestions.append(suggestion)

        hours = node.duration_hours
        if hours > cfg.scope_high_hours:
            add(
                "high",
                "scope",
                f"Session estimated at {format_hours(hours)} exceeds the "
                f"{format_hours(cfg.scope_high_hours)} scope limit",
                "Consider splitting into smaller sessions",
            )
        elif hours > cfg.scope_medium_hours:
            add(
                "medium",
                "scope",
                f"Session estimated at {format_hours(hours)} is on the higher end",
                "Trim scope or move follow-up work into a later session",
            )

        if len(node.objectives) > cfg.max_objectives:
            add(
                "medium",
                "scope",
                f"Too many objectives ({len(node.objectives)}) may indicate scope creep",
                "Focus on 3-5 key objectives per session",
            )
        elif not node.objectives:
            add("medium", "scope", "No objectives defined for session", "Add clear, measurable objectives")

        if node.domain is None:
            add(
                "low",
                "scope",
                "No domain specified for session",
                "Specify domain (backend, frontend, mobile, e2e, infrastructure)",
            )

        for dep in node.dependencies:
            if dep == number:
                continue  # reported through the cycle below
            if dep not in graph.nodes_by_number:
                add(
                    "high",
                    "dependencies",
                    f"Depends on session {dep}, which does not exist",
                    f"Add session {dep} or correct the dependency reference",
                )
            elif dep > number:
                add(
                    "medium",
                    "dependencies",
                    f"Depends on later session {dep}",
                    "Reorder sessions so prerequisites come first",
                )

        if number in cycle_of:
            cycle = cycle_of[number]
            chain = " -> ".join(str(n) for n in cycle + cycle[:1])
            add(
                "high",
                "dependencies",
                f"Part of a circular dependency chain: {chain}",
                "Break the cycle by removing one of its dependencies",
            )

        if not _mentions_testing(node, cfg):
            add(
                "low",
                "testing",
                "No testing-related objective",
                "Add an objective that covers tests for this session's work",
            )

        if node.estimated_time is None:
            add("low", "timeline", "No time estimate provided", "Add time estimate for better planning")
        if check_timeline and hours > median * cfg.timeline_median_factor:
            add(
                "medium",
                "timeline",
                f"Estimated {format_hours(hours)} is more than "
                f"{cfg.timeline_median_factor:g}x the plan median ({format_hours(median)})",
                "Rebalance work so no session dominates the schedule",
            )

        penalty = sum(cfg.severity_penalties.get(i.severity, 0) for i in issues)
        out.append(
            SessionCritique(
                session_number=number,
                score=max(0, 100 - penalty),
                issues=issues,
                suggestions=suggestions,
            )
        )
    return out


def overall_score(
    graph: SessionGraph,
    report: ValidityReport,
    sessions: list[SessionCritique],
    groups: list[ParallelGroup],
    cfg: CritiqueConfig,
) -> tuple[int, list[str], list[str]]:
    strengths: list[str] = []
    weaknesses: list[str] = []
    score = 100.0

    if report.valid:
        strengths.append("Clean dependency graph with no cycles or missing references")
    if report.cycles:
        weaknesses.append("Circular dependencies detected")
        score -= cfg.cycle_penalty * len(report.cycles)
    if report.missing_dependencies:
        weaknesses.append("References non-existent sessions")
        score -= cfg.missing_dependency_penalty * len(report.missing_dependencies)
    if graph.duplicate_numbers:
        dupes = ", ".join(str(n) for n in graph.duplicate_numbers)
        weaknesses.append(f"Duplicate session numbers ({dupes}); first declaration kept")
        score -= cfg.duplicate_session_penalty * len(graph.duplicate_numbers)

    high = sum(1 for s in sessions for i in s.issues if i.severity == "high")
    score -= cfg.high_issue_penalty * high

    avg = sum(s.score for s in sessions) / len(sessions) if sessions else 0.0
    if avg >= 90:
        strengths.append("Well-scoped sessions with clear objectives")
    elif avg < 70:
        weaknesses.append("Sessions have scope or definition issues")
    score -= round((100 - avg) * cfg.session_quality_weight)

    nodes = graph.nodes_by_number.values()
    if any(n.domain for n in nodes):
        strengths.append("Sessions organized by domain")
    else:
        weaknesses.append("Missing domain categorization")
    if any(n.estimated_time is not None for n in nodes):
        strengths.append("Time estimates provided for planning")
    else:
        weaknesses.append("Missing time estimates")

    if groups:
        noun = "opportunity" if len(groups) == 1 else "opportunities"
        strengths.append(f"{len(groups)} parallelization {noun} identified")

    final = int(max(0, min(100, score)))
    if report.cycles:
        final = min(final, 99)
    return final, strengths, weaknesses


def assess_risks(
    graph: SessionGraph,
    report: ValidityReport,
    sessions: list[SessionCritique],
    cfg: CritiqueConfig,
) -> list[Risk]:
    risks: list[Risk] = []
    nodes = list(graph.nodes_by_number.values())

    if report.cycles or report.missing_dependencies:
        parts: list[str] = []
        if report.cycles:
            parts.append(f"{len(report.cycles)} circular dependency chain(s) that will block execution")
        if report.missing_dependencies:
            parts.append(f"{len(report.missing_dependencies)} reference(s) to non-existent sessions")
        risks.append(
            _risk(
                "critical" if report.cycles else "high",
                "dependency",
                "Broken dependency graph",
                "Found " + " and ".join(parts),
                likelihood="high",
            )
        )

    oversized = [
        n.number
        for n in nodes
        if n.duration_hours > cfg.scope_high_hours or len(n.objectives) > cfg.max_objectives
    ]
    if oversized:
        risks.append(
            _risk(
                "medium",
                "scope",
                "Oversized sessions",
                f"{len(oversized)} session(s) exceed the recommended scope and risk incomplete delivery",
                likelihood="medium",
            )
        )

    if len(nodes) > cfg.testing_session_min_sessions and not any(_is_testing_session(n, cfg) for n in nodes):
        risks.append(
            _risk(
                "medium",
                "technical",
                "No dedicated testing session",
                "Plan lacks explicit testing/QA sessions",
                likelihood="medium",
            )
        )

    outliers = [
        s.session_number
        for s in sessions
        if any(i.category == "timeline" and i.severity != "low" for i in s.issues)
    ]
    unestimated = [n.number for n in nodes if n.estimated_time is None]
    if outliers:
        risks.append(
            _risk(
                "medium",
                "timeline",
                "Unbalanced session durations",
                f"{len(outliers)} session(s) run far beyond the plan median and may stall the schedule",
                likelihood="medium",
            )
        )
    elif unestimated and len(unestimated) * 2 > len(nodes):
        risks.append(
            _risk(
                "low",
                "timeline",
                "Unreliable schedule",
                f"{len(unestimated)} of {len(nodes)} session(s) have no time estimate",
                likelihood="medium",
            )
        )

    return risks


def recommendations(
    graph: SessionGraph,
    report: ValidityReport,
    sessions: list[SessionCritique],
    groups: list[ParallelGroup],
) -> list[str]:
    out: list[str] = []

    def add(text: str) -> None:
        if text not in out:
            out.append(text)

    if report.cycles:
        add("CRITICAL: Break circular dependencies before starting execution")
    if report.missing_dependencies:
        add("Add missing sessions or correct invalid dependency references")
    if graph.duplicate_numbers:
        add("Renumber duplicate sessions so every session number is unique")

    if groups:
        add(
            "Consider parallel execution of independent sessions to save "
            f"{format_hours(total_savings_hours(groups))}"
        )

    categories = {i.category for s in sessions for i in s.issues}
    for category, text in CATEGORY_RECOMMENDATIONS.items():
        if category in categories:
            add(text)

    high = sum(1 for s in sessions if any(i.severity == "high" for i in s.issues))
    if high:
        add(f"Review and address high-severity issues in {high} session(s)")

    if not out:
        add("Plan structure looks good - consider adding more detail to objectives")
    return out


def _empty_critique(
    report: ValidityReport, graph: SessionGraph, diagram_options: Optional[DiagramOptions]
) -> PlanCritique:
    diagram = None
    if diagram_options is not None:
        diagram = generate_dependency_diagram(graph, diagram_options, report=report)
    return PlanCritique(
        score=0,
        strengths=[],
        weaknesses=["No sessions defined in plan"],
        sessions=[],
        dependencies=report,
        opportunities=[],
        estimated_time_savings="0h",
        risks=[],
        recommendations=["Add sessions to the project plan"],
        diagram=diagram,
    )


def _risk(
    severity: RiskSeverity,
    category: RiskCategory,
    title: str,
    description: str,
    *,
    likelihood: Likelihood,
) -> Risk:
    return Risk(
        severity=severity,
        category=category,
        title=title,
        description=description,
        mitigation=RISK_MITIGATIONS[category],
        probability=likelihood,
        impact=likelihood,
    )


def _words(text: str) -> set[str]:
    return set(_WORD_RE.findall(text.lower()))


def _mentions_testing(node: SessionNode, cfg: CritiqueConfig) -> bool:
    keywords = set(cfg.testing_keywords)
    return any(_words(o) & keywords for o in node.objectives)


def _is_testing_session(node: SessionNode, cfg: CritiqueConfig) -> bool:
    return node.domain == "e2e" or bool(_words(node.title) & set(cfg.testing_keywords))
