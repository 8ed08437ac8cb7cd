"""Roster-wide derivation: per-athlete metrics, then roster-relative ones."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from combine.metrics.composites import apply_composites, apply_z_scores
from combine.metrics.constants import DEFAULT_CONSTANTS, PhysicsConstants
from combine.metrics.derived import derive_record
from models.athlete import AthleteRecord


def derive_roster(
    raws: Iterable[Mapping[str, Any]],
    constants: PhysicsConstants = DEFAULT_CONSTANTS,
    min_sample: int = 5,
) -> list[AthleteRecord]:
    """Derive every athlete, then fill z-scores and composite indices.

    Output order follows input order. Athletes without a name are dropped.
    """
    records = [r for r in (derive_record(raw, constants) for raw in raws) if r is not None]
    apply_z_scores(records, min_sample=min_sample)
    apply_composites(records)
    return records
