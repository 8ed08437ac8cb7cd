"""CLI for the combine metrics engine.

Coach/staff CLI over the same engine the roster views use: import the coach
export, record test sessions, make manual corrections and manage snapshots.
Every mutating command rebuilds the roster before printing.
"""

import json
from pathlib import Path
from typing import NoReturn

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from combine.config.settings import settings
from combine.core.logger import setup_logger
from combine.engine import PerformanceEngine
from combine.errors import InvalidChangesError, SnapshotNotFoundError
from combine.metrics.fields import DEFAULT_SPORT

# Initialize Rich console for output
console = Console()

# Initialize Typer app
app = typer.Typer(
    name="combine",
    help="Combine metrics CLI - roster, test history and snapshots",
    add_completion=False,
)
test_app = typer.Typer(help="Record or remove test session results")
snapshot_app = typer.Typer(help="Capture, list, restore and delete roster snapshots")
app.add_typer(test_app, name="test")
app.add_typer(snapshot_app, name="snapshot")

_NULL_VALUES = {"", "null", "none"}

_engine: PerformanceEngine | None = None


def get_engine() -> PerformanceEngine:
    """Engine for the configured store, rebuilt once per process."""
    global _engine
    if _engine is None:
        _engine = PerformanceEngine.from_settings(settings)
        _engine.rebuild()
    return _engine


def exit_with_error(message: str, code: int = 1) -> NoReturn:
    console.print(f"[bold red]✗ {message}[/bold red]")
    raise typer.Exit(code)


def _parse_assignments(assignments: list[str]) -> dict[str, str | None]:
    """Parse ``field=value`` pairs; ``field=`` or ``field=null`` clears the field."""
    changes: dict[str, str | None] = {}
    for assignment in assignments:
        field, sep, value = assignment.partition("=")
        if not sep or not field.strip():
            exit_with_error(f"Expected field=value, got '{assignment}'")
        value = value.strip()
        changes[field.strip()] = None if value.lower() in _NULL_VALUES else value
    return changes


def _fmt(value: float | None, digits: int = 2, stale: bool = False) -> str:
    if value is None:
        return "-"
    text = f"{value:.{digits}f}"
    # Carried over from an older session
    return f"[dim]{text}[/dim]" if stale else text


@app.callback()
def main_callback(
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    if debug:
        setup_logger(level="DEBUG", log_file=settings.log_file)


@app.command("import-baseline")
def import_baseline(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Coach export (JSON)"),
) -> None:
    """Replace the baseline with a coach export.

    Examples:
        combine import-baseline data/athletes.json
    """
    engine = get_engine()
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        engine.load_baseline(payload)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.bind(path=str(path)).error(f"Baseline import failed: {e}")
        exit_with_error(f"Could not read baseline from {path}: {e}")
    engine.rebuild()
    console.print(f"[bold green]✓ Imported baseline:[/bold green] {len(engine.get_current_records())} athletes")


@app.command()
def show(
    athlete_id: str | None = typer.Argument(None, help="Athlete id; omit for the whole roster"),
) -> None:
    """Show the roster, or one athlete's full derived record."""
    engine = get_engine()
    if athlete_id is not None:
        record = engine.get_athlete(athlete_id)
        if record is None:
            exit_with_error(f"Athlete not found: {athlete_id}")
        console.print(Panel(JSON(record.model_dump_json()), title=f"{record.name} ({record.id})"))
        return

    table = Table(title="Roster")
    for column in ("ID", "Name", "Pos", "Group", "40yd", "Vert", "Bench", "Squat", "Total Expl.", "Stale"):
        table.add_column(column)
    for r in engine.get_current_records():
        stale_keys = set(r.stale_keys)
        table.add_row(
            r.id,
            r.name,
            r.position or "-",
            r.group,
            _fmt(r.forty, stale="forty" in stale_keys),
            _fmt(r.vert, 1, stale="vert" in stale_keys),
            _fmt(r.bench, 0, stale="bench" in stale_keys),
            _fmt(r.squat, 0, stale="squat" in stale_keys),
            _fmt(r.total_explosive),
            str(len(r.stale_keys)) if r.stale_keys else "",
        )
    console.print(table)


@app.command()
def status() -> None:
    """Show which layers differ from the coach baseline, plus data quality notes."""
    engine = get_engine()
    data = engine.data_status()
    status_text = "Local changes present" if data.modified else "In sync with coach baseline"
    console.print(
        Panel(
            Text(status_text, style="bold yellow" if data.modified else "bold green"),
            subtitle=(
                f"athletes={data.athletes} additions={data.additions} deletions={data.deletions} "
                f"edits={data.edits} history={data.history_entries} snapshots={data.snapshots}"
            ),
            border_style="yellow" if data.modified else "green",
        )
    )
    report = engine.data_quality()
    for warning in report.warnings:
        console.print(f"[yellow]⚠ {warning.metric} (n={warning.n}):[/yellow] {warning.message}")
    for flag in report.flags:
        console.print(f"[red]⚑ {flag.athlete_name}:[/red] {flag.message}")


@app.command("add-athlete")
def add_athlete(
    name: str = typer.Argument(..., help="Athlete full name"),
    sport: str = typer.Option(DEFAULT_SPORT, "--sport", help="Sport"),
    position: str | None = typer.Option(None, "--position", "-p", help="Position code (e.g. WR, OL)"),
    grade: int | None = typer.Option(None, "--grade", "-g", help="School grade"),
    athlete_id: str | None = typer.Option(None, "--id", help="Reuse an existing id (re-adds a deleted athlete)"),
) -> None:
    """Add an athlete to the local roster."""
    engine = get_engine()
    try:
        new_id = engine.add_athlete(name, sport=sport, position=position, grade=grade, athlete_id=athlete_id)
    except InvalidChangesError as e:
        exit_with_error(str(e))
    engine.rebuild()
    console.print(f"[bold green]✓ Added {name}[/bold green] as {new_id}")


@app.command("delete-athlete")
def delete_athlete(athlete_id: str = typer.Argument(..., help="Athlete id")) -> None:
    """Remove an athlete locally. Test history is kept."""
    engine = get_engine()
    engine.delete_athlete(athlete_id)
    engine.rebuild()
    console.print(f"[bold green]✓ Deleted {athlete_id}[/bold green]")


@app.command()
def edit(
    athlete_id: str = typer.Argument(..., help="Athlete id"),
    assignments: list[str] = typer.Argument(..., help="field=value pairs (field= clears)"),
) -> None:
    """Record a manual correction.

    Examples:
        combine edit ATH001 weight_lb=205 position=LB
    """
    engine = get_engine()
    try:
        engine.save_edit(athlete_id, _parse_assignments(assignments))
    except InvalidChangesError as e:
        exit_with_error(str(e))
    engine.rebuild()
    console.print(f"[bold green]✓ Saved edit for {athlete_id}[/bold green]")


@app.command()
def undo(athlete_id: str = typer.Argument(..., help="Athlete id")) -> None:
    """Drop an athlete's outstanding manual edits."""
    engine = get_engine()
    if not engine.undo_edits(athlete_id):
        console.print(f"[yellow]No edits for {athlete_id}[/yellow]")
        return
    engine.rebuild()
    console.print(f"[bold green]✓ Reverted edits for {athlete_id}[/bold green]")


@app.command()
def stale(athlete_id: str = typer.Argument(..., help="Athlete id")) -> None:
    """List metrics carried over from an older test session."""
    engine = get_engine()
    keys = sorted(engine.get_stale_keys(athlete_id))
    if not keys:
        console.print(f"[green]No stale metrics for {athlete_id}[/green]")
        return
    previous = engine.get_previous_values(athlete_id)
    table = Table(title=f"Stale metrics for {athlete_id}")
    table.add_column("Metric")
    table.add_column("Last known value")
    for key in keys:
        value = previous.get(key)
        table.add_row(key, "-" if value is None else str(value))
    console.print(table)


@test_app.command("save")
def test_save(
    athlete_id: str = typer.Argument(..., help="Athlete id"),
    date: str = typer.Argument(..., help="Session date (YYYY-MM-DD)"),
    label: str = typer.Argument(..., help="Session label"),
    assignments: list[str] | None = typer.Argument(None, help="field=value pairs"),
) -> None:
    """Save one session's results, replacing an entry with the same date and label.

    Examples:
        combine test save ATH001 2024-03-01 Spring bench_1rm=245 vert_in=31
    """
    engine = get_engine()
    try:
        entry = engine.save_test_entry(athlete_id, date, label, _parse_assignments(assignments or []))
    except InvalidChangesError as e:
        exit_with_error(str(e))
    engine.rebuild()
    console.print(f"[bold green]✓ Saved {entry.date} {entry.label}[/bold green] for {athlete_id}")


@test_app.command("delete")
def test_delete(
    athlete_id: str = typer.Argument(..., help="Athlete id"),
    date: str = typer.Argument(..., help="Session date (YYYY-MM-DD)"),
    label: str = typer.Argument("", help="Session label"),
) -> None:
    """Remove one session entry."""
    engine = get_engine()
    if not engine.delete_test_entry(athlete_id, date, label):
        exit_with_error(f"No test entry for {athlete_id} on {date} '{label}'")
    engine.rebuild()
    console.print(f"[bold green]✓ Deleted {date} {label}[/bold green] for {athlete_id}")


@snapshot_app.command("capture")
def snapshot_capture(name: str = typer.Argument(..., help="Snapshot name (replaces one with the same name)")) -> None:
    """Freeze the current roster."""
    engine = get_engine()
    try:
        snapshot_id = engine.capture_snapshot(name)
    except InvalidChangesError as e:
        exit_with_error(str(e))
    console.print(f"[bold green]✓ Captured '{name}'[/bold green] ({snapshot_id})")


@snapshot_app.command("list")
def snapshot_list() -> None:
    """List stored snapshots."""
    snapshots = get_engine().list_snapshots()
    if not snapshots:
        console.print("[yellow]No snapshots[/yellow]")
        return
    table = Table(title="Snapshots")
    for column in ("ID", "Name", "Created", "Athletes"):
        table.add_column(column)
    for s in snapshots:
        table.add_row(s.id, s.name, s.created_at, str(s.athlete_count))
    console.print(table)


@snapshot_app.command("restore")
def snapshot_restore(snapshot_id: str = typer.Argument(..., help="Snapshot id")) -> None:
    """Make a snapshot the baseline and discard local additions, deletions and edits."""
    engine = get_engine()
    try:
        engine.restore_snapshot(snapshot_id)
    except SnapshotNotFoundError as e:
        exit_with_error(str(e))
    engine.rebuild()
    console.print(f"[bold green]✓ Restored {snapshot_id}[/bold green]: {len(engine.get_current_records())} athletes")


@snapshot_app.command("delete")
def snapshot_delete(snapshot_id: str = typer.Argument(..., help="Snapshot id")) -> None:
    """Delete a stored snapshot."""
    try:
        get_engine().delete_snapshot(snapshot_id)
    except SnapshotNotFoundError as e:
        exit_with_error(str(e))
    console.print(f"[bold green]✓ Deleted snapshot {snapshot_id}[/bold green]")


@app.command()
def reset(
    confirm: bool = typer.Option(False, "--confirm", help="Confirm reset (required for safety)"),
) -> None:
    """Discard additions, deletions and edits. Test history and snapshots are kept."""
    if not confirm:
        exit_with_error("--confirm flag is required for safety")
    engine = get_engine()
    engine.reset_to_baseline()
    engine.rebuild()
    console.print("[bold green]✓ Reset to coach baseline[/bold green]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
