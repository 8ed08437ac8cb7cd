"""Athlete layer and record models.

Layer models (``AthleteChanges``, ``AthleteEdit``, ``BaselineDataset``) keep
the persisted workbook field names. ``AthleteRecord`` is the enriched,
derived view handed to rendering and grading collaborators.
"""

from __future__ import annotations

import math
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _finite_or_none(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


class AthleteChanges(BaseModel):
    """Partial raw-field update carried by a manual edit.

    Unknown keys are rejected; an explicit ``None`` clears the field.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    position: str | None = None
    sport: str | None = None
    sprint_notes: str | None = None
    grade: float | None = None
    height_in: float | None = None
    weight_lb: float | None = None
    bench_1rm: float | None = None
    squat_1rm: float | None = None
    medball_in: float | None = None
    vert_in: float | None = None
    broad_in: float | None = None
    sprint_020: float | None = None
    sprint_2030: float | None = None
    sprint_3040: float | None = None
    pro_agility: float | None = None
    l_drill: float | None = None
    backpedal: float | None = None
    w_drill: float | None = None

    @field_validator("*", mode="before")
    @classmethod
    def drop_non_finite(cls, value: Any) -> Any:
        return _finite_or_none(value)

    def as_changes(self) -> dict[str, Any]:
        """Only the fields the caller actually set."""
        return self.model_dump(exclude_unset=True)


class AthleteEdit(BaseModel):
    """One outstanding manual correction per athlete."""

    id: str
    changes: dict[str, Any] = Field(default_factory=dict)
    timestamp: str | None = None


class BaselineDataset(BaseModel):
    """Coach-provided roster export: the layer every other layer sits on."""

    model_config = ConfigDict(extra="allow")

    athletes: list[dict[str, Any]] = Field(default_factory=list)
    constants: dict[str, float] | None = None
    meta: dict[str, Any] = Field(default_factory=dict)

    @field_validator("athletes")
    @classmethod
    def require_identity(cls, athletes: list[dict[str, Any]]) -> list[dict[str, Any]]:
        kept: list[dict[str, Any]] = []
        for athlete in athletes:
            athlete_id = athlete.get("id")
            if athlete_id is None or athlete_id == "":
                logger.warning(f"Dropping baseline athlete without id: name={athlete.get('name')!r}")
                continue
            kept.append({**athlete, "id": str(athlete_id)})
        return kept


class AthleteRecord(BaseModel):
    """Canonical, derived view of one athlete after a rebuild.

    Raw metrics are ``None`` when not measured; every derived metric whose
    inputs are missing is ``None`` as well. ``stale_keys`` lists the metrics
    whose value was carried over from an older test session.
    """

    # --- Identity & bio ---
    id: str
    name: str
    initials: str
    position: str | None = None
    sport: str
    grade: float | None = None
    training_age: float | None = None
    group: str
    last_updated: str | None = None

    # --- Raw measurements ---
    height: float | None = None
    weight: float | None = None
    sprint_020: float | None = None
    sprint_2030: float | None = None
    sprint_3040: float | None = None
    sprint_notes: str | None = None
    vert: float | None = None
    broad: float | None = None
    bench: float | None = None
    squat: float | None = None
    medball: float | None = None
    pro_agility: float | None = None
    l_drill: float | None = None
    backpedal: float | None = None
    w_drill: float | None = None

    # --- Unit conversions ---
    height_cm: float | None = None
    mass_kg: float | None = None
    vert_cm: float | None = None
    broad_cm: float | None = None
    bench_kg: float | None = None
    squat_kg: float | None = None

    # --- Sprint physics ---
    forty: float | None = None
    v1: float | None = None
    v2: float | None = None
    v3: float | None = None
    v_max: float | None = None
    v10_max: float | None = None
    top_mph: float | None = None
    a1: float | None = None
    a2: float | None = None
    a3: float | None = None
    f1: float | None = None
    f2: float | None = None
    f3: float | None = None
    imp1: float | None = None
    imp2: float | None = None
    imp3: float | None = None
    mom1: float | None = None
    mom2: float | None = None
    mom3: float | None = None
    mom_max: float | None = None
    pow1: float | None = None
    pow2: float | None = None
    pow3: float | None = None

    # --- Strength & power ---
    rel_bench: float | None = None
    rel_squat: float | None = None
    mb_rel: float | None = None
    peak_power: float | None = None
    rel_peak_power: float | None = None
    strength_util: float | None = None

    # --- Roster-relative ---
    z_scores: dict[str, float] = Field(default_factory=dict)
    low_n_metrics: list[str] = Field(default_factory=list)
    explosive_upper: float | None = None
    total_explosive: float | None = None

    stale_keys: list[str] = Field(default_factory=list)

    def metric(self, key: str) -> Any:
        """Look up a metric by key, ``None`` for unknown keys."""
        return getattr(self, key, None)
