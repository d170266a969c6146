from __future__ import annotations

import logging
import math
from typing import Any, Iterable, Optional, cast

from session_planner.core.durations import hours_or_default
from session_planner.core.errors import SessionInputError
from session_planner.core.model import Domain, SessionGraph, SessionNode


logger = logging.getLogger(__name__)

ALLOWED_DOMAINS: set[str] = {"backend", "frontend", "mobile", "e2e", "infrastructure"}
DOMAIN_ALIASES: dict[str, str] = {"end-to-end": "e2e", "end_to_end": "e2e", "infra": "infrastructure"}


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _is_list_of_int(v: Any) -> bool:
    return isinstance(v, list) and all(_is_int(x) for x in v)


def _is_list_of_str(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def _is_finite(v: float) -> bool:
    # ints beyond float range overflow on conversion
    try:
        return math.isfinite(float(v))
    except OverflowError:
        return False


def normalize_domain(value: str) -> Optional[str]:
    key = value.strip().lower()
    key = DOMAIN_ALIASES.get(key, key)
    return key if key in ALLOWED_DOMAINS else None


def build_graph(
    records: Any, *, file: Optional[str] = None
) -> tuple[Optional[SessionGraph], list[SessionInputError]]:
    """Assemble a SessionGraph from caller-supplied session records.

    Shape problems (wrong types, non-positive numbers, unknown domains) are
    returned as errors and no graph is built. Structural problems (cycles,
    dangling references, self-loops, duplicate numbers) are NOT judged here:
    the graph is always returned and the validator reports them.

    Duplicate session numbers: the first declaration wins.
    """

    errors: list[SessionInputError] = []

    if not isinstance(records, list):
        errors.append(
            SessionInputError(
                code="E_INVALID_TOP_LEVEL",
                message="sessions must be an array",
                file=file,
                path="sessions",
            )
        )
        return None, errors

    accepted: list[SessionNode] = []

    for i, raw in enumerate(records):
        node_path = f"sessions[{i}]"
        if not isinstance(raw, dict):
            errors.append(
                SessionInputError(
                    code="E_INVALID_TYPE",
                    message="session must be an object",
                    file=file,
                    path=node_path,
                )
            )
            continue

        node_errors = _check_record(raw, node_path, file)
        if node_errors:
            errors.extend(node_errors)
            continue

        estimated = raw.get("estimatedTime")
        if estimated is None:
            estimated_text: Optional[str] = None
            duration = hours_or_default(None)
        elif isinstance(estimated, str):
            estimated_text = estimated
            duration = hours_or_default(estimated)
        else:
            estimated_text = f"{estimated}h"
            duration = float(estimated)

        domain_raw = raw.get("domain")
        domain = normalize_domain(domain_raw) if isinstance(domain_raw, str) else None

        accepted.append(
            SessionNode(
                number=raw["number"],
                title=raw["title"],
                dependencies=tuple(_dedupe(raw["dependencies"])),
                domain=cast(Optional[Domain], domain),
                duration_hours=duration,
                estimated_time=estimated_text,
                objectives=tuple(raw.get("objectives") or []),
            )
        )

    if errors:
        return None, _sorted(errors)

    return assemble(accepted), []


def assemble(nodes: Iterable[SessionNode]) -> SessionGraph:
    """Build adjacency from already-shaped nodes. Pure structural assembly."""

    first: dict[int, SessionNode] = {}
    duplicates: set[int] = set()
    for node in nodes:
        if node.number in first:
            duplicates.add(node.number)
            continue
        first[node.number] = node

    nodes_by_number = {n: first[n] for n in sorted(first)}

    edges: list[tuple[int, int]] = []
    missing: list[tuple[int, int]] = []
    for number, node in nodes_by_number.items():
        for dep in node.dependencies:
            if dep in nodes_by_number:
                edges.append((dep, number))
            else:
                missing.append((number, dep))

    if duplicates:
        logger.debug("duplicate session numbers ignored: %s", sorted(duplicates))
    logger.debug(
        "built graph: %d sessions, %d edges, %d dangling",
        len(nodes_by_number),
        len(edges),
        len(missing),
    )

    return SessionGraph(
        nodes_by_number=nodes_by_number,
        edges=edges,
        missing_edges=missing,
        duplicate_numbers=sorted(duplicates),
    )


def _check_record(raw: dict[str, Any], node_path: str, file: Optional[str]) -> list[SessionInputError]:
    errors: list[SessionInputError] = []

    def err(code: str, message: str, field: str) -> None:
        errors.append(
            SessionInputError(code=code, message=message, file=file, path=f"{node_path}.{field}")
        )

    number = raw.get("number")
    if number is None:
        err("E_REQUIRED_FIELD", "number is required", "number")
    elif not _is_int(number):
        err("E_INVALID_TYPE", "number must be an integer", "number")
    elif number < 1:
        err("E_INVALID_VALUE", f"number must be >= 1, got {number}", "number")

    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        err("E_REQUIRED_FIELD", "title is required and must be a non-empty string", "title")

    deps = raw.get("dependencies")
    if deps is None:
        err("E_REQUIRED_FIELD", "dependencies is required (use [] for none)", "dependencies")
    elif not _is_list_of_int(deps):
        err("E_INVALID_TYPE", "dependencies must be an array of integers", "dependencies")

    domain = raw.get("domain")
    if domain is not None:
        if not isinstance(domain, str):
            err("E_INVALID_TYPE", "domain must be a string", "domain")
        elif normalize_domain(domain) is None:
            err("E_INVALID_ENUM", f"domain must be one of {sorted(ALLOWED_DOMAINS)}", "domain")

    estimated = raw.get("estimatedTime")
    if estimated is not None and not isinstance(estimated, str):
        if not isinstance(estimated, (int, float)) or isinstance(estimated, bool):
            err("E_INVALID_TYPE", "estimatedTime must be a string like '3h' or a number", "estimatedTime")
        elif estimated < 0 or not _is_finite(estimated):
            err("E_INVALID_VALUE", "estimatedTime must be a finite, non-negative number", "estimatedTime")

    objectives = raw.get("objectives")
    if objectives is not None and not _is_list_of_str(objectives):
        err("E_INVALID_TYPE", "objectives must be an array of strings", "objectives")

    return errors


def _dedupe(values: Iterable[int]) -> list[int]:
    seen: set[int] = set()
    out: list[int] = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out


def _sorted(errors: Iterable[SessionInputError]) -> list[SessionInputError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
