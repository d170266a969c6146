from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional


Domain = Literal["backend", "frontend", "mobile", "e2e", "infrastructure"]
Severity = Literal["low", "medium", "high"]
IssueCategory = Literal["scope", "dependencies", "testing", "timeline"]
RiskSeverity = Literal["low", "medium", "high", "critical"]
RiskCategory = Literal["technical", "timeline", "scope", "dependency", "compliance"]
Likelihood = Literal["low", "medium", "high"]

DEFAULT_DOMAIN: Domain = "infrastructure"
DEFAULT_DURATION_HOURS = 3.0


@dataclass(frozen=True)
class SessionNode:
    number: int
    title: str
    dependencies: tuple[int, ...]

    domain: Optional[Domain] = None
    duration_hours: float = DEFAULT_DURATION_HOURS
    estimated_time: Optional[str] = None  # as written by the caller; None when absent
    objectives: tuple[str, ...] = ()

    @property
    def domain_bucket(self) -> Domain:
        return self.domain or DEFAULT_DOMAIN


@dataclass(frozen=True)
class SessionGraph:
    nodes_by_number: dict[int, SessionNode]  # ascending session number
    edges: list[tuple[int, int]]  # (prerequisite, dependent); walkable only
    missing_edges: list[tuple[int, int]]  # (session, requires) for absent prerequisites
    duplicate_numbers: list[int] = field(default_factory=list)

    def prerequisites(self, number: int) -> list[int]:
        return [p for p, d in self.edges if d == number]

    def dependents(self, number: int) -> list[int]:
        return [d for p, d in self.edges if p == number]

    def __len__(self) -> int:
        return len(self.nodes_by_number)


@dataclass(frozen=True)
class ValidityReport:
    valid: bool
    cycles: list[list[int]]
    missing_dependencies: list[tuple[int, int]]  # (session, requires)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "cycles": [list(c) for c in self.cycles],
            "missingDependencies": [
                {"session": s, "requires": r} for s, r in self.missing_dependencies
            ],
        }


@dataclass(frozen=True)
class ParallelGroup:
    sessions: list[int]
    reason: str
    time_savings: str
    time_savings_hours: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessions": list(self.sessions),
            "reason": self.reason,
            "timeSavings": self.time_savings,
        }


@dataclass(frozen=True)
class SessionIssue:
    severity: Severity
    category: IssueCategory
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity,
            "category": self.category,
            "description": self.description,
        }


@dataclass(frozen=True)
class SessionCritique:
    session_number: int
    score: int
    issues: list[SessionIssue]
    suggestions: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionNumber": self.session_number,
            "score": self.score,
            "issues": [i.to_dict() for i in self.issues],
            "suggestions": list(self.suggestions),
        }


@dataclass(frozen=True)
class Risk:
    severity: RiskSeverity
    category: RiskCategory
    title: str
    description: str
    mitigation: str
    probability: Likelihood
    impact: Likelihood

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity,
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "mitigation": self.mitigation,
            "probability": self.probability,
            "impact": self.impact,
        }


@dataclass(frozen=True)
class DependencyDiagram:
    mermaid: str
    critical_path: list[int]
    parallel_groups: list[ParallelGroup]
    total_nodes: int
    total_edges: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "mermaid": self.mermaid,
            "criticalPath": list(self.critical_path),
            "parallelGroups": [g.to_dict() for g in self.parallel_groups],
            "totalNodes": self.total_nodes,
            "totalEdges": self.total_edges,
        }


@dataclass(frozen=True)
class PlanCritique:
    score: int
    strengths: list[str]
    weaknesses: list[str]
    sessions: list[SessionCritique]
    dependencies: ValidityReport
    opportunities: list[ParallelGroup]
    estimated_time_savings: str
    risks: list[Risk]
    recommendations: list[str]
    critical_path: list[int] = field(default_factory=list)
    diagram: Optional[DependencyDiagram] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "overall": {
                "score": self.score,
                "strengths": list(self.strengths),
                "weaknesses": list(self.weaknesses),
            },
            "sessions": [s.to_dict() for s in self.sessions],
            "dependencies": self.dependencies.to_dict(),
            "parallelization": {
                "opportunities": [g.to_dict() for g in self.opportunities],
                "estimatedTimeSavings": self.estimated_time_savings,
            },
            "risks": [r.to_dict() for r in self.risks],
            "recommendations": list(self.recommendations),
        }
        if self.diagram is not None:
            out["diagram"] = {
                "mermaid": self.diagram.mermaid,
                "criticalPath": list(self.diagram.critical_path),
            }
        return out
