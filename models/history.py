"""Test session history models."""

from __future__ import annotations

import math
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TestValues(BaseModel):
    """Values recorded at one test session, keyed by persisted field name."""

    __test__ = False

    model_config = ConfigDict(extra="forbid")

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
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return value


def normalize_test_date(value: str) -> str:
    """Canonical ``YYYY-MM-DD`` form of a session date; raises ValueError."""
    return date.fromisoformat(value.strip()).isoformat()


class TestHistoryEntry(BaseModel):
    """One athlete's results for one dated, labelled session.

    ``date`` is a calendar date (``YYYY-MM-DD``); string order is date order.
    An entry with no populated values is a placeholder worksheet row.
    """

    __test__ = False

    date: str
    label: str = ""
    values: dict[str, Any] = Field(default_factory=dict)

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        return normalize_test_date(value)

    def has_data(self) -> bool:
        return any(v is not None and v != "" for v in self.values.values())
