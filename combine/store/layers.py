"""Layered store adapter.

Typed read/write of the collections the engine is rebuilt from, each held
as JSON text under ``<namespace>:<collection>``:

- baseline: coach-provided ``BaselineDataset``
- additions: athletes created locally
- deletions: athlete ids removed locally
- edits: one outstanding ``AthleteEdit`` per athlete
- test_history: athlete id -> ``TestHistoryEntry`` list
- snapshots: frozen, versioned rosters

A collection that fails to parse or validate is logged and read as empty;
it never blocks a rebuild. Backend connectivity errors propagate.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from combine.store.kv import KeyValueStore
from models.athlete import AthleteEdit, BaselineDataset
from models.history import TestHistoryEntry
from models.snapshot import SNAPSHOT_FORMAT_VERSION, Snapshot

T = TypeVar("T")

BASELINE = "baseline"
ADDITIONS = "additions"
DELETIONS = "deletions"
EDITS = "edits"
TEST_HISTORY = "test_history"
SNAPSHOTS = "snapshots"

_RECORDS_ADAPTER = TypeAdapter(list[dict[str, Any]])
_DELETIONS_ADAPTER = TypeAdapter(list[str])
_EDITS_ADAPTER = TypeAdapter(list[AthleteEdit])
_HISTORY_ADAPTER = TypeAdapter(dict[str, list[TestHistoryEntry]])


class LayerStore:
    def __init__(self, store: KeyValueStore, namespace: str = "combine"):
        self._store = store
        self._namespace = namespace

    def key(self, collection: str) -> str:
        return f"{self._namespace}:{collection}"

    def _read(self, collection: str, parse: Callable[[str], T], fallback: Callable[[], T]) -> T:
        raw = self._store.get(self.key(collection))
        if raw is None:
            return fallback()
        try:
            return parse(raw)
        except (ValidationError, ValueError) as e:
            logger.bind(collection=collection, error=str(e)).error(f"[STORE] Malformed '{collection}' collection, reading as empty")
            return fallback()

    def _write(self, collection: str, payload: str) -> None:
        self._store.set(self.key(collection), payload)

    # -----------------------------
    # Baseline
    # -----------------------------
    def get_baseline(self) -> BaselineDataset:
        return self._read(BASELINE, BaselineDataset.model_validate_json, BaselineDataset)

    def set_baseline(self, baseline: BaselineDataset) -> None:
        self._write(BASELINE, baseline.model_dump_json())

    # -----------------------------
    # Layers
    # -----------------------------
    def get_additions(self) -> list[dict[str, Any]]:
        return self._read(ADDITIONS, _RECORDS_ADAPTER.validate_json, list)

    def set_additions(self, additions: list[dict[str, Any]]) -> None:
        self._write(ADDITIONS, json.dumps(additions))

    def get_deletions(self) -> list[str]:
        return self._read(DELETIONS, _DELETIONS_ADAPTER.validate_json, list)

    def set_deletions(self, deletions: list[str]) -> None:
        self._write(DELETIONS, json.dumps(deletions))

    def get_edits(self) -> list[AthleteEdit]:
        return self._read(EDITS, _EDITS_ADAPTER.validate_json, list)

    def set_edits(self, edits: list[AthleteEdit]) -> None:
        self._write(EDITS, _EDITS_ADAPTER.dump_json(edits).decode("utf-8"))

    def get_test_history(self) -> dict[str, list[TestHistoryEntry]]:
        return self._read(TEST_HISTORY, _HISTORY_ADAPTER.validate_json, dict)

    def set_test_history(self, history: dict[str, list[TestHistoryEntry]]) -> None:
        self._write(TEST_HISTORY, _HISTORY_ADAPTER.dump_json(history).decode("utf-8"))

    def clear_layers(self) -> None:
        """Drop additions, deletions and edits. Test history is kept."""
        for collection in (ADDITIONS, DELETIONS, EDITS):
            self._store.delete(self.key(collection))

    # -----------------------------
    # Snapshots
    # -----------------------------
    def _get_raw_snapshots(self) -> list[dict[str, Any]]:
        return self._read(SNAPSHOTS, _RECORDS_ADAPTER.validate_json, list)

    def get_snapshots(self) -> list[Snapshot]:
        """Readable snapshots; unreadable or newer-format ones are skipped."""
        snapshots: list[Snapshot] = []
        for raw in self._get_raw_snapshots():
            version = raw.get("format_version", SNAPSHOT_FORMAT_VERSION)
            if not isinstance(version, int) or version > SNAPSHOT_FORMAT_VERSION:
                logger.bind(snapshot_id=raw.get("id"), format_version=version).error("[SNAPSHOT] Unsupported snapshot format, skipping")
                continue
            try:
                snapshots.append(Snapshot.model_validate(raw))
            except ValidationError as e:
                logger.bind(snapshot_id=raw.get("id"), error=str(e)).error("[SNAPSHOT] Unreadable snapshot, skipping")
        return snapshots

    def save_snapshot(self, snapshot: Snapshot) -> None:
        """Store a snapshot, replacing any existing one with the same name."""
        kept = [s for s in self._get_raw_snapshots() if s.get("name") != snapshot.name]
        kept.append(snapshot.model_dump(mode="json"))
        self._write(SNAPSHOTS, json.dumps(kept))

    def delete_snapshot(self, snapshot_id: str) -> bool:
        raw = self._get_raw_snapshots()
        kept = [s for s in raw if s.get("id") != snapshot_id]
        if len(kept) == len(raw):
            return False
        self._write(SNAPSHOTS, json.dumps(kept))
        return True
