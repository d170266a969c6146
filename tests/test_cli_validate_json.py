import json
from typer.testing import CliRunner

from session_planner.cli import app

runner = CliRunner()


def test_cli_validate_json_success():
    r = runner.invoke(app, ["validate", "examples/complex-plan.json", "--format", "json"])
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload["command"] == "validate"
    assert payload["ok"] is True
    assert payload["error_count"] == 0
    assert payload["errors"] == []
    assert payload["dependencies"] == {"valid": True, "cycles": [], "missingDependencies": []}
    assert payload["summary"]["session_count"] == 8
    assert payload["summary"]["critical_path"] == [1, 4, 5, 7, 8]
    assert payload["summary"]["critical_path_hours"] == "19h"


def test_cli_validate_json_cycle():
    r = runner.invoke(app, ["validate", "examples/cycle-plan.yaml", "--format", "json"])
    assert r.exit_code == 3
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    assert payload["dependencies"]["cycles"] == [[1, 3, 2]]
    assert {e["code"] for e in payload["errors"]} == {"G_CYCLE"}
    assert {e["source"] for e in payload["errors"]} == {"graph"}


def test_cli_validate_json_missing_dependency():
    r = runner.invoke(app, ["validate", "examples/missing-dep-plan.yaml", "--format", "json"])
    assert r.exit_code == 3
    payload = json.loads(r.stdout)
    assert payload["dependencies"]["missingDependencies"] == [{"session": 2, "requires": 10}]


def test_cli_validate_json_bad_input():
    r = runner.invoke(app, ["validate", "examples/invalid-bad-number.yaml", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    assert payload["error_count"] == 2
    codes = {e["code"] for e in payload["errors"]}
    assert codes == {"E_INVALID_VALUE", "E_INVALID_TYPE"}
    assert {e["source"] for e in payload["errors"]} == {"input"}
