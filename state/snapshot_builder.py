from __future__ import annotations

import copy
import uuid
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from combine.history.resolver import resolve_history
from combine.metrics.fields import TEST_JSON_KEYS, is_present
from models.athlete import AthleteEdit, BaselineDataset
from models.history import TestHistoryEntry
from models.snapshot import SNAPSHOT_FORMAT_VERSION, Snapshot
from state.roster_builder import coach_timestamps, edit_applies


def build_snapshot(
    *,
    name: str,
    roster: list[Mapping[str, Any]],
    baseline: BaselineDataset,
    edits: Iterable[AthleteEdit] = (),
    history: Mapping[str, list[TestHistoryEntry]] | None = None,
    now: datetime | None = None,
) -> Snapshot:
    """Freeze a resolved roster into a self-contained snapshot.

    ``roster`` must already have every layer folded in (see
    ``build_roster``); the snapshot keeps the baseline's constants and meta
    so restoring it reproduces the same derived metrics. ``edits`` and
    ``history`` are the layers ``roster`` was built from.
    """
    created_at = (now or datetime.now(UTC)).isoformat()
    return Snapshot(
        format_version=SNAPSHOT_FORMAT_VERSION,
        id=uuid.uuid4().hex,
        name=name,
        created_at=created_at,
        athletes=copy.deepcopy([dict(a) for a in roster]),
        constants=dict(baseline.constants) if baseline.constants else None,
        meta=copy.deepcopy(baseline.meta),
        pinned_edits=pinned_edits(roster=roster, baseline=baseline, edits=edits, history=history),
    )


def pinned_edits(
    *,
    roster: list[Mapping[str, Any]],
    baseline: BaselineDataset,
    edits: Iterable[AthleteEdit],
    history: Mapping[str, list[TestHistoryEntry]] | None,
) -> list[AthleteEdit]:
    """Applied edits narrowed to the test fields that history also sets.

    Those are the frozen values a rebuild over the retained history would
    overwrite. The original timestamp is kept so the coach gate still passes.
    """
    in_roster = {a["id"] for a in roster}
    timestamps = coach_timestamps(baseline.athletes)
    pinned: list[AthleteEdit] = []
    for edit in edits:
        if edit.id not in in_roster or not edit_applies(edit, timestamps):
            continue
        latest = resolve_history((history or {}).get(edit.id)).latest_values
        changes = {
            key: copy.deepcopy(value)
            for key, value in edit.changes.items()
            if key in TEST_JSON_KEYS and is_present(latest.get(key))
        }
        if changes:
            pinned.append(AthleteEdit(id=edit.id, changes=changes, timestamp=edit.timestamp))
    return pinned


def baseline_from_snapshot(snapshot: Snapshot) -> BaselineDataset:
    """Turn a snapshot back into a baseline dataset."""
    return BaselineDataset(
        athletes=copy.deepcopy(snapshot.athletes),
        constants=dict(snapshot.constants) if snapshot.constants else None,
        meta={**copy.deepcopy(snapshot.meta), "restored_from_snapshot": snapshot.id},
    )
