from __future__ import annotations

import json
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from session_planner.core.analyze.critical_path import critical_path, path_hours
from session_planner.core.critique.critique_plan import critique_plan
from session_planner.core.critique.scoring_config import CritiqueConfigError, load_critique_config
from session_planner.core.durations import format_hours
from session_planner.core.errors import GraphIssue, PlanError, PlanLoadError, SessionInputError
from session_planner.core.graph.build_graph import build_graph
from session_planner.core.io.load_sessions import load_sessions
from session_planner.core.model import PlanCritique, SessionGraph
from session_planner.core.render.mermaid import DiagramOptions, generate_dependency_diagram
from session_planner.core.validate.validate_graph import graph_issues, validate_graph
from session_planner.logging_config import configure_logging

app = typer.Typer(add_completion=False, no_args_is_help=True)


@app.callback()
def _callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr"),
) -> None:
    """Session planner CLI."""
    configure_logging(verbose)


def _source(e: PlanError) -> str:
    if isinstance(e, PlanLoadError):
        return "load"
    if isinstance(e, SessionInputError):
        return "input"
    if isinstance(e, GraphIssue):
        return "graph"
    return "option"


def _to_item(e: PlanError) -> dict[str, Any]:
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": "error",
        "source": _source(e),
    }


def _emit_json(payload: dict[str, Any], exit_code: int = 0) -> NoReturn:
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    raise typer.Exit(code=exit_code)


def _emit_failure(command: str, format: str, errors: list[PlanError], exit_code: int) -> NoReturn:
    if format == "json":
        _emit_json(
            {
                "tool": "session-planner",
                "command": command,
                "ok": False,
                "error_count": len(errors),
                "errors": [_to_item(e) for e in errors],
            },
            exit_code,
        )
    _print_errors(errors)
    raise typer.Exit(code=exit_code)


def _check_format(command: str, format: str, allowed: tuple[str, ...]) -> None:
    if format in allowed:
        return
    err = PlanError(
        code=f"E_{command.upper()}_UNKNOWN_FORMAT",
        message=f"unknown format: {format} (choose one of: {', '.join(allowed)})",
        file=None,
        path="format",
    )
    _print_errors([err])
    raise typer.Exit(code=2)


def _load_graph(command: str, path: str, format: str) -> tuple[dict[str, Any], SessionGraph]:
    try:
        plan = load_sessions(path)
    except PlanLoadError as e:
        _emit_failure(command, format, [e], 1)

    graph, errors = build_graph(plan["sessions"], file=plan["__file__"])
    if errors or graph is None:
        _emit_failure(command, format, list(errors), 2)
    assert graph is not None
    return plan, graph


def _diagram_options(
    direction: str,
    highlight_critical_path: bool,
    parallel_groups: bool,
    color_by_domain: bool,
    node_shapes: bool,
    max_title_length: int,
    code_block: bool,
    legend: bool,
) -> DiagramOptions:
    try:
        return DiagramOptions(
            direction=direction.upper(),
            highlight_critical_path=highlight_critical_path,
            show_parallel_groups=parallel_groups,
            color_by_domain=color_by_domain,
            show_node_shapes=node_shapes,
            max_title_length=max_title_length,
            wrap_in_code_block=code_block,
            include_legend=legend,
        )
    except ValueError as e:
        _print_errors([PlanError(code="E_DIAGRAM_INVALID_OPTION", message=str(e), path="options")])
        raise typer.Exit(code=2)


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a session plan (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Check a session plan for malformed records, cycles and dangling dependencies."""
    _check_format("validate", format, ("text", "json"))
    plan, graph = _load_graph("validate", path, format)

    report = validate_graph(graph)
    issues: list[PlanError] = list(graph_issues(graph, report, file=plan["__file__"]))
    if issues:
        if format == "json":
            _emit_json(
                {
                    "tool": "session-planner",
                    "command": "validate",
                    "ok": False,
                    "error_count": len(issues),
                    "errors": [_to_item(e) for e in issues],
                    "dependencies": report.to_dict(),
                },
                3,
            )
        _print_errors(issues)
        raise typer.Exit(code=3)

    path_ = critical_path(graph, report)
    hours = format_hours(path_hours(graph, path_))

    if format == "json":
        _emit_json(
            {
                "tool": "session-planner",
                "command": "validate",
                "ok": True,
                "error_count": 0,
                "errors": [],
                "dependencies": report.to_dict(),
                "summary": {
                    "session_count": len(graph),
                    "edge_count": len(graph.edges),
                    "critical_path": path_,
                    "critical_path_hours": hours,
                },
            }
        )

    typer.echo(f"OK: {len(graph)} sessions, {len(graph.edges)} dependencies")
    if path_:
        typer.echo("Critical path: " + " -> ".join(str(n) for n in path_) + f" ({hours})")


@app.command("critique")
def critique(
    path: str = typer.Argument(..., help="Path to a session plan (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
    config: str | None = typer.Option(
        None, "--config", help="Optional YAML file overriding scoring thresholds/penalties"
    ),
    diagram: bool = typer.Option(False, "--diagram", help="Attach a Mermaid dependency diagram"),
    direction: str = typer.Option("TB", "--direction", help="Diagram direction: TB|BT|LR|RL"),
    highlight_critical_path: bool = typer.Option(
        True, "--highlight-critical-path/--no-highlight-critical-path"
    ),
    parallel_groups: bool = typer.Option(True, "--parallel-groups/--no-parallel-groups"),
    color_by_domain: bool = typer.Option(True, "--color-by-domain/--no-color-by-domain"),
) -> None:
    """Score a session plan and list issues, risks and recommendations."""
    _check_format("critique", format, ("text", "json"))

    try:
        cfg = load_critique_config(config)
    except FileNotFoundError:
        _emit_failure(
            "critique",
            format,
            [
                PlanLoadError(
                    code="E_CONFIG_FILE_NOT_FOUND",
                    message=f"config file not found: {config}",
                    path="config",
                )
            ],
            1,
        )
    except CritiqueConfigError as e:
        _emit_failure(
            "critique",
            format,
            [PlanError(code="E_CONFIG_INVALID", message=str(e), file=config, path="config")],
            2,
        )

    diagram_options = None
    if diagram:
        diagram_options = _diagram_options(
            direction,
            highlight_critical_path,
            parallel_groups,
            color_by_domain,
            node_shapes=False,
            max_title_length=40,
            code_block=False,
            legend=False,
        )

    plan, graph = _load_graph("critique", path, format)
    result = critique_plan(graph, cfg, diagram_options=diagram_options)

    if format == "json":
        _emit_json(result.to_dict())

    _print_critique(plan.get("title"), graph, result)


@app.command("diagram")
def diagram(
    path: str = typer.Argument(..., help="Path to a session plan (.yaml/.yml/.json)"),
    format: str = typer.Option("mermaid", "--format", help="Output format: mermaid|json"),
    out: str | None = typer.Option(None, "--out", help="Write the Mermaid text to this file"),
    direction: str = typer.Option("TB", "--direction", help="Diagram direction: TB|BT|LR|RL"),
    highlight_critical_path: bool = typer.Option(
        False, "--highlight-critical-path/--no-highlight-critical-path"
    ),
    parallel_groups: bool = typer.Option(False, "--parallel-groups/--no-parallel-groups"),
    color_by_domain: bool = typer.Option(False, "--color-by-domain/--no-color-by-domain"),
    node_shapes: bool = typer.Option(False, "--node-shapes/--no-node-shapes"),
    max_title_length: int = typer.Option(40, "--max-title-length", help="Truncate titles longer than this"),
    code_block: bool = typer.Option(False, "--code-block/--no-code-block", help="Wrap in ```mermaid fences"),
    legend: bool = typer.Option(False, "--legend/--no-legend", help="Add a domain legend (needs --color-by-domain)"),
) -> None:
    """Render the session dependency graph as a Mermaid flowchart."""
    _check_format("diagram", format, ("mermaid", "json"))
    options = _diagram_options(
        direction,
        highlight_critical_path,
        parallel_groups,
        color_by_domain,
        node_shapes,
        max_title_length,
        code_block,
        legend,
    )

    _, graph = _load_graph("diagram", path, format)
    result = generate_dependency_diagram(graph, options)

    if out:
        p = Path(out)
        if str(p.parent) not in (".", ""):
            p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(result.mermaid + "\n", encoding="utf-8")

    if format == "json":
        _emit_json(result.to_dict())

    if out:
        typer.echo(f"OK: wrote {out} ({result.total_nodes} nodes, {result.total_edges} edges)")
        return
    typer.echo(result.mermaid)


def _print_critique(
    title: str | None, graph: SessionGraph, result: PlanCritique
) -> None:
    console = Console(markup=False, highlight=False)

    if title:
        console.print(title)
    console.print(f"Score: {result.score}/100")
    for s in result.strengths:
        console.print(f"+ {s}")
    for w in result.weaknesses:
        console.print(f"- {w}")

    if result.sessions:
        table = Table(title="Sessions")
        table.add_column("Session")
        table.add_column("Score")
        table.add_column("Issues")
        for s in result.sessions:
            node = graph.nodes_by_number[s.session_number]
            issues = "\n".join(f"{i.severity}/{i.category}: {i.description}" for i in s.issues)
            table.add_row(f"{s.session_number}. {node.title}", str(s.score), issues or "-")
        console.print(table)

    if result.critical_path:
        hours = format_hours(path_hours(graph, result.critical_path))
        console.print(
            "Critical path: " + " -> ".join(str(n) for n in result.critical_path) + f" ({hours})"
        )

    for g in result.opportunities:
        members = ", ".join(str(n) for n in g.sessions)
        console.print(f"Parallel: {members} (saves {g.time_savings}) - {g.reason}")

    if result.risks:
        risks = Table(title="Risks")
        risks.add_column("Severity")
        risks.add_column("Category")
        risks.add_column("Risk")
        risks.add_column("Mitigation")
        for r in result.risks:
            risks.add_row(r.severity, r.category, f"{r.title}: {r.description}", r.mitigation)
        console.print(risks)

    console.print("Recommendations:")
    for rec in result.recommendations:
        console.print(f"* {rec}")

    if result.diagram is not None:
        typer.echo("")
        typer.echo(result.diagram.mermaid)


def _print_errors(errors: list[PlanError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="session-planner")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
