"""Performance engine: the single owner of the rebuilt roster.

Reads every layer from the key-value store, merges them, derives metrics and
keeps the result in memory for rendering and grading collaborators.

Contract:
- Mutations write one layer and invalidate every cache, the record list
  included; they do not rebuild. Callers call ``rebuild()`` when they want
  the new state, and a read of an invalidated roster rebuilds first.
- ``rebuild()`` always recomputes from the store; nothing incremental is
  trusted across calls.
- Only an unknown snapshot id (and invalid input at the boundary) raises.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel, ValidationError

from combine.cache import AthleteCache, AthleteIndex
from combine.config.settings import Settings, settings as default_settings
from combine.errors import InvalidChangesError, SnapshotNotFoundError
from combine.history.resolver import ResolvedHistory, previous_values, resolve_history, sort_newest_first
from combine.history.staleness import propagate_stale
from combine.metrics.constants import constants_from_overrides
from combine.metrics.data_quality import DataQualityReport, assess_data_quality
from combine.metrics.fields import DEFAULT_SPORT
from combine.metrics.roster import derive_roster
from combine.services import PerformanceEvaluator
from combine.store.factory import create_store
from combine.store.kv import KeyValueStore
from combine.store.layers import LayerStore
from models.athlete import AthleteChanges, AthleteEdit, AthleteRecord, BaselineDataset
from models.history import TestHistoryEntry, TestValues, normalize_test_date
from models.snapshot import SnapshotSummary
from state.roster_builder import build_roster
from state.snapshot_builder import baseline_from_snapshot, build_snapshot

_GENERATED_ID = re.compile(r"^ATH(\d+)$")


class DataStatus(BaseModel):
    athletes: int
    additions: int
    deletions: int
    edits: int
    history_entries: int
    snapshots: int

    @property
    def modified(self) -> bool:
        return bool(self.additions or self.deletions or self.edits)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class PerformanceEngine:
    def __init__(self, store: KeyValueStore, namespace: str = "combine", z_score_min_sample: int = 5):
        self.layers = LayerStore(store, namespace=namespace)
        self.z_score_min_sample = z_score_min_sample
        self._index = AthleteIndex()
        self._resolved: AthleteCache[ResolvedHistory] = AthleteCache("resolved_history")
        self._stale: AthleteCache[frozenset[str]] = AthleteCache("stale_keys")
        self._history: dict[str, list[TestHistoryEntry]] | None = None
        self._records: list[AthleteRecord] = []
        self._built = False

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> PerformanceEngine:
        config = config or default_settings
        return cls(
            create_store(config),
            namespace=config.store_namespace,
            z_score_min_sample=config.z_score_min_sample,
        )

    # -------------------------------------------------------------------
    # Caches
    # -------------------------------------------------------------------

    def invalidate(self) -> None:
        """Drop every cache derived from the layers."""
        self._history = None
        self._resolved.invalidate()
        self._stale.invalidate()
        self._index.invalidate()
        self._records = []
        self._built = False

    def _current(self) -> list[AthleteRecord]:
        if not self._built:
            self.rebuild()
        return self._records

    def _test_history(self) -> dict[str, list[TestHistoryEntry]]:
        if self._history is None:
            self._history = self.layers.get_test_history()
        return self._history

    def resolved_history(self, athlete_id: str) -> ResolvedHistory:
        return self._resolved.get_or_compute(athlete_id, lambda: resolve_history(self._test_history().get(athlete_id)))

    # -------------------------------------------------------------------
    # Rebuild & reads
    # -------------------------------------------------------------------

    def rebuild(self) -> None:
        """Recompute the canonical roster from baseline and every layer."""
        self.invalidate()
        baseline = self.layers.get_baseline()
        history = self._test_history()
        roster = build_roster(
            baseline=baseline.athletes,
            additions=self.layers.get_additions(),
            deletions=self.layers.get_deletions(),
            edits=self.layers.get_edits(),
            history=history,
            resolved={athlete_id: self.resolved_history(athlete_id) for athlete_id in history},
        )
        records = derive_roster(
            roster,
            constants=constants_from_overrides(baseline.constants),
            min_sample=self.z_score_min_sample,
        )
        for record in records:
            record.stale_keys = sorted(self.get_stale_keys(record.id))
        self._records = records
        self._index.load(records)
        self._built = True
        logger.info(f"[REBUILD] Rebuilt roster: {len(records)} athletes from {len(baseline.athletes)} baseline, {len(history)} with history")

    def get_current_records(self) -> list[AthleteRecord]:
        return list(self._current())

    def get_athlete(self, athlete_id: str) -> AthleteRecord | None:
        self._current()
        return self._index.get(athlete_id)

    def get_stale_keys(self, athlete_id: str) -> frozenset[str]:
        """Raw and derived metric keys carried over from an older session."""
        return self._stale.get_or_compute(
            athlete_id,
            lambda: propagate_stale(self.resolved_history(athlete_id).stale_raw_keys),
        )

    def get_previous_values(self, athlete_id: str) -> dict[str, Any]:
        return previous_values(self.resolved_history(athlete_id))

    def get_history(self, athlete_id: str) -> list[TestHistoryEntry]:
        """The athlete's test entries, newest first."""
        return sort_newest_first(self._test_history().get(athlete_id, []))

    def data_status(self) -> DataStatus:
        history = self.layers.get_test_history()
        return DataStatus(
            athletes=len(self._current()),
            additions=len(self.layers.get_additions()),
            deletions=len(self.layers.get_deletions()),
            edits=len(self.layers.get_edits()),
            history_entries=sum(len(entries) for entries in history.values()),
            snapshots=len(self.layers.get_snapshots()),
        )

    def data_quality(self) -> DataQualityReport:
        return assess_data_quality(self._current())

    def evaluate(self, service: PerformanceEvaluator) -> Any:
        """Hand the current roster to an external grading/statistics service."""
        return service.evaluate(self.get_current_records())

    # -------------------------------------------------------------------
    # Baseline
    # -------------------------------------------------------------------

    def load_baseline(self, dataset: BaselineDataset | Mapping[str, Any]) -> None:
        if not isinstance(dataset, BaselineDataset):
            dataset = BaselineDataset.model_validate(dataset)
        self.layers.set_baseline(dataset)
        self.invalidate()
        logger.info(f"Loaded baseline with {len(dataset.athletes)} athletes")

    def reset_to_baseline(self) -> None:
        """Discard additions, deletions and edits. Test history is kept."""
        self.layers.clear_layers()
        self.invalidate()
        logger.info("Reset to baseline: additions, deletions and edits cleared")

    # -------------------------------------------------------------------
    # Test history
    # -------------------------------------------------------------------

    def save_test_entry(
        self,
        athlete_id: str,
        date: str,
        label: str,
        values: TestValues | Mapping[str, Any],
    ) -> TestHistoryEntry:
        """Record a session's values, replacing any entry with the same date and label."""
        try:
            if not isinstance(values, TestValues):
                values = TestValues.model_validate(dict(values))
            entry = TestHistoryEntry(date=date, label=label, values=values.model_dump(exclude_unset=True))
        except ValidationError as e:
            raise InvalidChangesError(f"Invalid test entry for {athlete_id}: {e}") from e

        history = self.layers.get_test_history()
        entries = [e for e in history.get(athlete_id, []) if not (e.date == entry.date and e.label == entry.label)]
        entries.append(entry)
        history[athlete_id] = entries
        self.layers.set_test_history(history)
        self.invalidate()
        logger.bind(athlete_id=athlete_id, date=entry.date, label=label).info("[HISTORY] Saved test entry")
        return entry

    def delete_test_entry(self, athlete_id: str, date: str, label: str) -> bool:
        try:
            date = normalize_test_date(date)
        except ValueError:
            logger.bind(athlete_id=athlete_id, date=date).warning("[HISTORY] Not a session date, nothing deleted")
            return False
        history = self.layers.get_test_history()
        entries = history.get(athlete_id)
        if not entries:
            return False
        kept = [e for e in entries if not (e.date == date and e.label == label)]
        if len(kept) == len(entries):
            return False
        if kept:
            history[athlete_id] = kept
        else:
            del history[athlete_id]
        self.layers.set_test_history(history)
        self.invalidate()
        logger.bind(athlete_id=athlete_id, date=date, label=label).info("[HISTORY] Deleted test entry")
        return True

    # -------------------------------------------------------------------
    # Additions, deletions, edits
    # -------------------------------------------------------------------

    def next_athlete_id(self) -> str:
        """Next ``ATH###`` id above every id in use anywhere."""
        ids = {str(a.get("id")) for a in self.layers.get_additions()}
        ids.update(str(a["id"]) for a in self.layers.get_baseline().athletes)
        highest = 0
        for athlete_id in ids:
            match = _GENERATED_ID.match(athlete_id)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"ATH{highest + 1:03d}"

    def add_athlete(
        self,
        name: str,
        sport: str = DEFAULT_SPORT,
        position: str | None = None,
        grade: int | None = None,
        athlete_id: str | None = None,
    ) -> str:
        """Create an athlete in the additions layer and return its id.

        Passing the id of a deleted athlete re-adds it (and picks its history
        back up). The new athlete gets an empty entry for every test session
        already on record so it shows up on those worksheets.
        """
        name = name.strip()
        if not name:
            raise InvalidChangesError("Athlete name is required")
        athlete_id = athlete_id or self.next_athlete_id()

        additions = self.layers.get_additions()
        additions.append(
            {
                "id": athlete_id,
                "name": name,
                "position": position,
                "sport": sport,
                "grade": grade,
                "height_in": None,
                "weight_lb": None,
                "bench_1rm": None,
                "squat_1rm": None,
                "medball_in": None,
                "vert_in": None,
                "broad_in": None,
                "sprint_020": None,
                "sprint_2030": None,
                "sprint_3040": None,
            }
        )
        self.layers.set_additions(additions)

        deletions = self.layers.get_deletions()
        if athlete_id in deletions:
            self.layers.set_deletions([d for d in deletions if d != athlete_id])

        seeded = self._seed_placeholder_entries(athlete_id)
        self.invalidate()
        logger.bind(athlete_id=athlete_id, placeholders=seeded).info(f"Added athlete {name}")
        return athlete_id

    def _seed_placeholder_entries(self, athlete_id: str) -> int:
        history = self.layers.get_test_history()
        sessions: dict[tuple[str, str], None] = {}
        for entries in history.values():
            for entry in entries:
                sessions.setdefault((entry.date, entry.label), None)
        own = {(e.date, e.label) for e in history.get(athlete_id, [])}
        missing = [s for s in sessions if s not in own]
        if not missing:
            return 0
        history[athlete_id] = [
            *history.get(athlete_id, []),
            *(TestHistoryEntry(date=date, label=label, values={}) for date, label in missing),
        ]
        self.layers.set_test_history(history)
        return len(missing)

    def delete_athlete(self, athlete_id: str) -> None:
        """Remove an athlete from the roster. Their test history is kept."""
        deletions = self.layers.get_deletions()
        if athlete_id not in deletions:
            deletions.append(athlete_id)
            self.layers.set_deletions(deletions)
        self.layers.set_additions([a for a in self.layers.get_additions() if a.get("id") != athlete_id])
        self.layers.set_edits([e for e in self.layers.get_edits() if e.id != athlete_id])
        self.invalidate()
        logger.bind(athlete_id=athlete_id).info("Deleted athlete")

    def save_edit(
        self,
        athlete_id: str,
        changes: AthleteChanges | Mapping[str, Any],
        timestamp: str | None = None,
    ) -> AthleteEdit:
        """Merge field changes into the athlete's outstanding edit.

        Raises:
            InvalidChangesError: unknown field or wrongly typed value
        """
        if not isinstance(changes, AthleteChanges):
            try:
                changes = AthleteChanges.model_validate(dict(changes))
            except ValidationError as e:
                raise InvalidChangesError(f"Invalid changes for {athlete_id}: {e}") from e
        new_changes = changes.as_changes()

        edits = self.layers.get_edits()
        edit = next((e for e in edits if e.id == athlete_id), None)
        if edit is None:
            edit = AthleteEdit(id=athlete_id)
            edits.append(edit)
        edit.changes.update(new_changes)
        edit.timestamp = timestamp or _now_iso()
        self.layers.set_edits(edits)
        self.invalidate()
        logger.bind(athlete_id=athlete_id, fields=sorted(new_changes)).info("Saved edit")
        return edit

    def undo_edits(self, athlete_id: str) -> bool:
        edits = self.layers.get_edits()
        kept = [e for e in edits if e.id != athlete_id]
        if len(kept) == len(edits):
            return False
        self.layers.set_edits(kept)
        self.invalidate()
        return True

    # -------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------

    def capture_snapshot(self, name: str) -> str:
        """Freeze the fully resolved roster under ``name`` and return its id."""
        name = name.strip()
        if not name:
            raise InvalidChangesError("Snapshot name is required")
        self.invalidate()
        baseline = self.layers.get_baseline()
        history = self._test_history()
        edits = self.layers.get_edits()
        roster = build_roster(
            baseline=baseline.athletes,
            additions=self.layers.get_additions(),
            deletions=self.layers.get_deletions(),
            edits=edits,
            history=history,
        )
        snapshot = build_snapshot(name=name, roster=roster, baseline=baseline, edits=edits, history=history)
        self.layers.save_snapshot(snapshot)
        logger.bind(snapshot_id=snapshot.id, athletes=len(roster)).info(f"[SNAPSHOT] Captured snapshot '{name}'")
        return snapshot.id

    def restore_snapshot(self, snapshot_id: str) -> None:
        """Make a snapshot the baseline and clear additions, deletions and edits.

        The snapshot's pinned edits are written back so retained test history
        cannot overwrite a value that an edit had corrected.

        Raises:
            SnapshotNotFoundError: no readable snapshot has this id
        """
        snapshot = next((s for s in self.layers.get_snapshots() if s.id == snapshot_id), None)
        if snapshot is None:
            raise SnapshotNotFoundError(snapshot_id)
        self.layers.set_baseline(baseline_from_snapshot(snapshot))
        self.layers.clear_layers()
        if snapshot.pinned_edits:
            self.layers.set_edits([e.model_copy(deep=True) for e in snapshot.pinned_edits])
        self.invalidate()
        logger.bind(snapshot_id=snapshot_id, pinned=len(snapshot.pinned_edits)).info(f"[SNAPSHOT] Restored snapshot '{snapshot.name}'")

    def list_snapshots(self) -> list[SnapshotSummary]:
        return [s.summary() for s in self.layers.get_snapshots()]

    def delete_snapshot(self, snapshot_id: str) -> None:
        if not self.layers.delete_snapshot(snapshot_id):
            raise SnapshotNotFoundError(snapshot_id)
        logger.bind(snapshot_id=snapshot_id).info("[SNAPSHOT] Deleted snapshot")
