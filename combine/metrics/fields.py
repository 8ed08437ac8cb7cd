"""Raw field catalogue and value coercion.

Persisted records use the workbook's column names (``bench_1rm``,
``sprint_020``...). Enriched records use short metric keys (``bench``,
``sprint_020``...). ``TEST_METRICS`` is the bridge between the two and the
only set of fields a test session may carry.
"""

from __future__ import annotations

import math
from typing import Any, NamedTuple


class MetricField(NamedTuple):
    key: str
    json_key: str
    label: str
    unit: str
    lower_is_better: bool = False


TEST_METRICS: tuple[MetricField, ...] = (
    MetricField("weight", "weight_lb", "Weight", "lb"),
    MetricField("bench", "bench_1rm", "Bench 1RM", "lb"),
    MetricField("squat", "squat_1rm", "Squat 1RM", "lb"),
    MetricField("medball", "medball_in", "Med Ball", "in"),
    MetricField("vert", "vert_in", "Vertical", "in"),
    MetricField("broad", "broad_in", "Broad Jump", "in"),
    MetricField("sprint_020", "sprint_020", "0-20 yd", "s", lower_is_better=True),
    MetricField("sprint_2030", "sprint_2030", "20-30 yd", "s", lower_is_better=True),
    MetricField("sprint_3040", "sprint_3040", "30-40 yd", "s", lower_is_better=True),
    MetricField("pro_agility", "pro_agility", "5-10-5", "s"),
    MetricField("l_drill", "l_drill", "L-Drill", "s", lower_is_better=True),
    MetricField("backpedal", "backpedal", "Backpedal", "s", lower_is_better=True),
    MetricField("w_drill", "w_drill", "W-Drill", "s", lower_is_better=True),
)

METRIC_BY_JSON_KEY: dict[str, MetricField] = {m.json_key: m for m in TEST_METRICS}
TEST_JSON_KEYS: frozenset[str] = frozenset(METRIC_BY_JSON_KEY)

TEXT_FIELDS: tuple[str, ...] = ("name", "position", "sport", "sprint_notes")
NUMERIC_FIELDS: tuple[str, ...] = ("grade", "height_in", *(m.json_key for m in TEST_METRICS))
EDITABLE_FIELDS: frozenset[str] = frozenset((*TEXT_FIELDS, *NUMERIC_FIELDS))

DEFAULT_SPORT = "Football"

SPORT_POSITIONS: dict[str, dict[str, tuple[str, ...]]] = {
    "Football": {
        "Skill": ("RB", "WR", "DB"),
        "Big Skill": ("QB", "TE", "LB"),
        "Linemen": ("OL", "DL"),
    },
    "Soccer": {
        "Speed": ("ATK", "MF"),
        "Physical": ("DEF", "GK"),
    },
    "Baseball": {
        "Position Player": ("IF", "OF"),
        "Battery": ("P", "C"),
    },
    "Basketball": {
        "Guard": ("Guard",),
        "Big": ("Big",),
    },
}


def is_present(value: Any) -> bool:
    """Whether a layer value counts as data (not null, not blank, finite)."""
    if value is None or value == "":
        return False
    if isinstance(value, float) and not math.isfinite(value):
        return False
    return True


def to_number(value: Any) -> float | None:
    """Coerce a raw cell to a finite number, or None.

    Blank cells, ``"N/A"``, unevaluated spreadsheet formulas (``"=B2*2"``),
    unparsable strings and non-finite numbers all read as "not measured".
    """
    if value is None or value == "" or value == "N/A" or isinstance(value, bool):
        return None
    if isinstance(value, str):
        if value.startswith("="):
            return None
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    number = float(value)
    if not math.isfinite(number):
        return None
    return number


def to_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str) and value.startswith("="):
        return None
    text = str(value).strip()
    return text or None


def position_group(position: str | None, sport: str | None) -> str:
    """Map a position to its sport-specific group, ``Other`` when unknown."""
    if not position:
        return "Other"
    groups = SPORT_POSITIONS.get(sport or DEFAULT_SPORT)
    if not groups:
        return "Other"
    wanted = position.upper()
    for group, positions in groups.items():
        if wanted in (p.upper() for p in positions):
            return group
    return "Other"


def initials(name: str | None) -> str:
    if not name or not name.strip():
        return "?"
    parts = name.split()
    if len(parts) == 1:
        return parts[0][0].upper()
    return (parts[0][0] + parts[-1][0]).upper()
