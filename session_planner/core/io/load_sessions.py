from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from session_planner.core.errors import PlanLoadError


def load_sessions(path: str) -> dict[str, Any]:
    """Load a YAML/JSON session plan.

    The document is either a bare list of session records or a mapping with a
    `sessions` key (and an optional `title`). Returns a dict with keys:
    sessions, title, __file__. Does not coerce records; the graph builder owns
    shape checking.
    """

    p = Path(path)
    if not p.exists():
        raise PlanLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise PlanLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise PlanLoadError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except PlanLoadError:
        raise
    except Exception as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise PlanLoadError(code=code, message=str(e), file=str(p)) from e

    if data is None:
        data = []

    if isinstance(data, list):
        return {"sessions": data, "title": None, "__file__": str(p)}

    if not isinstance(data, dict) or "sessions" not in data:
        raise PlanLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a list of sessions or a mapping with 'sessions'",
            file=str(p),
        )

    title = data.get("title")
    return {
        "sessions": data.get("sessions"),
        "title": title if isinstance(title, str) else None,
        "__file__": str(p),
    }
