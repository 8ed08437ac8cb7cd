from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger

from combine.history.resolver import ResolvedHistory, resolve_history
from combine.metrics.fields import EDITABLE_FIELDS, TEST_JSON_KEYS, is_present
from models.athlete import AthleteEdit
from models.history import TestHistoryEntry


def coach_timestamps(baseline: Iterable[Mapping[str, Any]]) -> dict[str, str]:
    """Authoritative ``lastUpdated`` per baseline athlete id."""
    return {str(a["id"]): str(a["lastUpdated"]) for a in baseline if a.get("lastUpdated")}


def edit_applies(edit: AthleteEdit, timestamps: Mapping[str, str]) -> bool:
    """An edit applies unless both timestamps exist and the edit is not newer."""
    coach_ts = timestamps.get(edit.id) or ""
    edit_ts = edit.timestamp or ""
    return not (coach_ts and edit_ts and edit_ts <= coach_ts)


def build_roster(
    *,
    baseline: Iterable[Mapping[str, Any]],
    additions: Iterable[Mapping[str, Any]] = (),
    deletions: Iterable[str] = (),
    edits: Iterable[AthleteEdit] = (),
    history: Mapping[str, list[TestHistoryEntry]] | None = None,
    timestamps: Mapping[str, str] | None = None,
    resolved: Mapping[str, ResolvedHistory] | None = None,
) -> list[dict[str, Any]]:
    """Deterministically merge every layer into one raw record per athlete.

    Later steps override earlier ones, field by field:
    1. deep copy of the baseline
    2. additions whose id is new (baseline wins on collision)
    3. deletions removed
    4. newest test-history value per field
    5. manual edits newer than the coach's ``lastUpdated``

    Edits therefore beat test history for the same field regardless of the
    session date. Inputs are never mutated.

    Args:
        timestamps: coach timestamps; derived from ``baseline`` when None
        resolved: precomputed history views by athlete id (optional cache)
    """
    roster = copy.deepcopy([dict(a) for a in baseline])
    if timestamps is None:
        timestamps = coach_timestamps(roster)

    # -----------------------------
    # Additions
    # -----------------------------
    ids = {a["id"] for a in roster}
    for addition in additions:
        athlete_id = addition.get("id")
        if not athlete_id:
            logger.warning(f"Ignoring addition without id: name={addition.get('name')!r}")
            continue
        if athlete_id in ids:
            logger.debug(f"Ignoring addition with existing id: {athlete_id}")
            continue
        roster.append(copy.deepcopy(dict(addition)))
        ids.add(athlete_id)

    # -----------------------------
    # Deletions
    # -----------------------------
    deleted = set(deletions)
    if deleted:
        roster = [a for a in roster if a["id"] not in deleted]

    by_id = {a["id"]: a for a in roster}

    # -----------------------------
    # Test history (newest value per field)
    # -----------------------------
    for athlete_id, athlete in by_id.items():
        view = resolved.get(athlete_id) if resolved is not None else None
        if view is None:
            view = resolve_history((history or {}).get(athlete_id))
        _apply_history(athlete, view)

    # -----------------------------
    # Manual edits (coach timestamp gate)
    # -----------------------------
    for edit in edits:
        athlete = by_id.get(edit.id)
        if athlete is None:
            logger.debug(f"Skipping edit for athlete not in roster: {edit.id}")
            continue
        if not edit_applies(edit, timestamps):
            logger.debug(f"Skipping edit older than coach data: id={edit.id} edit={edit.timestamp} coach={timestamps.get(edit.id)}")
            continue
        _apply_changes(athlete, edit.changes)

    return roster


def _apply_history(athlete: dict[str, Any], view: ResolvedHistory) -> None:
    for key, value in view.latest_values.items():
        if key not in TEST_JSON_KEYS:
            logger.debug(f"Ignoring history value for non-test field: id={athlete['id']} field={key}")
            continue
        if is_present(value):
            athlete[key] = value


def _apply_changes(athlete: dict[str, Any], changes: Mapping[str, Any]) -> None:
    for key, value in changes.items():
        if key not in EDITABLE_FIELDS:
            logger.warning(f"Ignoring unknown edit field: id={athlete['id']} field={key}")
            continue
        athlete[key] = copy.deepcopy(value)
