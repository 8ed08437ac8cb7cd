"""Tests for the combine CLI commands."""

import json
from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

import cli.cli as cli_module
from combine.engine import PerformanceEngine

runner = CliRunner()


@pytest.fixture(autouse=True)
def use_test_engine(monkeypatch: pytest.MonkeyPatch, engine: PerformanceEngine) -> PerformanceEngine:
    monkeypatch.setattr(cli_module, "_engine", engine)
    monkeypatch.setattr(cli_module, "console", Console(width=200))
    return engine


def test_show_roster():
    result = runner.invoke(cli_module.app, ["show"])

    assert result.exit_code == 0
    assert "Marcus Reed" in result.output
    assert "ATH003" in result.output


def test_show_unknown_athlete_fails():
    result = runner.invoke(cli_module.app, ["show", "NOPE"])

    assert result.exit_code == 1
    assert "Athlete not found" in result.output


def test_import_baseline(tmp_path: Path, engine: PerformanceEngine):
    path = tmp_path / "athletes.json"
    path.write_text(json.dumps({"athletes": [{"id": "X1", "name": "Only One"}]}), encoding="utf-8")

    result = runner.invoke(cli_module.app, ["import-baseline", str(path)])

    assert result.exit_code == 0
    assert [r.id for r in engine.get_current_records()] == ["X1"]


def test_import_baseline_rejects_bad_json(tmp_path: Path):
    path = tmp_path / "broken.json"
    path.write_text("{nope", encoding="utf-8")

    result = runner.invoke(cli_module.app, ["import-baseline", str(path)])

    assert result.exit_code == 1


def test_edit_and_undo(engine: PerformanceEngine):
    result = runner.invoke(cli_module.app, ["edit", "ATH001", "bench_1rm=250", "position=CB"])

    assert result.exit_code == 0
    marcus = engine.get_athlete("ATH001")
    assert marcus is not None
    assert marcus.bench == 250
    assert marcus.position == "CB"

    result = runner.invoke(cli_module.app, ["undo", "ATH001"])

    assert result.exit_code == 0
    marcus = engine.get_athlete("ATH001")
    assert marcus is not None
    assert marcus.bench == 225


def test_edit_rejects_unknown_field():
    result = runner.invoke(cli_module.app, ["edit", "ATH001", "wingspan=80"])

    assert result.exit_code == 1


def test_test_save_and_stale(engine: PerformanceEngine):
    runner.invoke(cli_module.app, ["test", "save", "ATH001", "2024-01-15", "Winter", "vert_in=31"])
    result = runner.invoke(cli_module.app, ["test", "save", "ATH001", "2024-03-01", "Spring", "bench_1rm=245"])

    assert result.exit_code == 0
    assert len(engine.get_history("ATH001")) == 2

    result = runner.invoke(cli_module.app, ["stale", "ATH001"])

    assert result.exit_code == 0
    assert "peak_power" in result.output


def test_test_delete_missing_entry_fails():
    result = runner.invoke(cli_module.app, ["test", "delete", "ATH001", "2024-01-15", "Winter"])

    assert result.exit_code == 1


def test_add_and_delete_athlete(engine: PerformanceEngine):
    result = runner.invoke(cli_module.app, ["add-athlete", "Jordan Lee", "--position", "RB"])

    assert result.exit_code == 0
    assert "ATH004" in result.output
    assert engine.get_athlete("ATH004") is not None

    result = runner.invoke(cli_module.app, ["delete-athlete", "ATH004"])

    assert result.exit_code == 0
    assert engine.get_athlete("ATH004") is None


def test_snapshot_lifecycle(engine: PerformanceEngine):
    result = runner.invoke(cli_module.app, ["snapshot", "capture", "Spring"])
    assert result.exit_code == 0
    snapshot_id = engine.list_snapshots()[0].id

    result = runner.invoke(cli_module.app, ["snapshot", "list"])
    assert result.exit_code == 0
    assert "Spring" in result.output

    result = runner.invoke(cli_module.app, ["snapshot", "restore", snapshot_id])
    assert result.exit_code == 0

    result = runner.invoke(cli_module.app, ["snapshot", "delete", snapshot_id])
    assert result.exit_code == 0
    assert engine.list_snapshots() == []


def test_unknown_snapshot_exits_with_error():
    result = runner.invoke(cli_module.app, ["snapshot", "restore", "missing"])

    assert result.exit_code == 1
    assert "Snapshot not found" in result.output


def test_status_and_reset(engine: PerformanceEngine):
    engine.save_edit("ATH001", {"bench_1rm": 300})

    result = runner.invoke(cli_module.app, ["status"])
    assert result.exit_code == 0
    assert "Local changes present" in result.output

    assert runner.invoke(cli_module.app, ["reset"]).exit_code == 1
    result = runner.invoke(cli_module.app, ["reset", "--confirm"])

    assert result.exit_code == 0
    assert engine.layers.get_edits() == []
