"""Roster-relative z-scores and composite explosiveness indices.

Z-scores use the population standard deviation over athletes that have the
metric. Composite weights are fixed:

- explosive_upper = 0.6 * z(mb_rel) + 0.4 * z(rel_bench)
  (either term alone when the other is missing)
- total_explosive = weighted mean of explosive_upper (0.45),
  z(peak_power) (0.30) and z(v_max) (0.25) over the parts present
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from loguru import logger

from combine.metrics.derived import rd
from models.athlete import AthleteRecord

# (metric key, inverted): inverted metrics are better when lower
Z_METRICS: tuple[tuple[str, bool], ...] = (
    ("medball", False),
    ("bench", False),
    ("squat", False),
    ("vert", False),
    ("broad", False),
    ("forty", True),
    ("f1", False),
    ("v_max", False),
    ("peak_power", False),
    ("rel_bench", False),
    ("rel_squat", False),
    ("mb_rel", False),
)

EXPLOSIVE_UPPER_WEIGHTS: tuple[tuple[str, float], ...] = (("mb_rel", 0.6), ("rel_bench", 0.4))
TOTAL_EXPLOSIVE_WEIGHTS: tuple[tuple[str, float], ...] = (
    ("explosive_upper", 0.45),
    ("peak_power", 0.30),
    ("v_max", 0.25),
)


@dataclass(frozen=True)
class MetricSummary:
    mean: float | None
    sd: float | None
    n: int
    low_n: bool


def mean(values: list[float]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def population_sd(values: list[float]) -> float | None:
    if len(values) < 2:
        return None
    m = sum(values) / len(values)
    return math.sqrt(sum((v - m) ** 2 for v in values) / len(values))


def apply_z_scores(records: list[AthleteRecord], min_sample: int = 5) -> dict[str, MetricSummary]:
    """Fill ``z_scores`` and ``low_n_metrics`` on every record in place."""
    summary: dict[str, MetricSummary] = {}
    for key, inverted in Z_METRICS:
        values = [v for v in (r.metric(key) for r in records) if v is not None]
        m = mean(values)
        sd = population_sd(values)
        low_n = len(values) < min_sample
        summary[key] = MetricSummary(mean=m, sd=sd, n=len(values), low_n=low_n)
        if m is None or sd is None or sd <= 0:
            continue
        for record in records:
            value = record.metric(key)
            if value is None:
                continue
            z = (value - m) / sd
            record.z_scores[key] = rd(-z if inverted else z, 2)
            if low_n:
                record.low_n_metrics.append(key)
    low = [k for k, s in summary.items() if s.low_n]
    if low:
        logger.debug(f"Z-scores based on fewer than {min_sample} values: {low}")
    return summary


def _weighted_mean(parts: dict[str, float | None], weights: tuple[tuple[str, float], ...]) -> float | None:
    """Weighted mean over the parts present, renormalising the weights."""
    present = [(parts[name], weight) for name, weight in weights if parts.get(name) is not None]
    if not present:
        return None
    return rd(sum(v * w for v, w in present) / sum(w for _, w in present), 2)


def explosive_upper(z_scores: dict[str, float]) -> float | None:
    return _weighted_mean(dict(z_scores), EXPLOSIVE_UPPER_WEIGHTS)


def total_explosive(upper: float | None, z_scores: dict[str, float]) -> float | None:
    parts = {"explosive_upper": upper, "peak_power": z_scores.get("peak_power"), "v_max": z_scores.get("v_max")}
    return _weighted_mean(parts, TOTAL_EXPLOSIVE_WEIGHTS)


def apply_composites(records: list[AthleteRecord]) -> None:
    for record in records:
        record.explosive_upper = explosive_upper(record.z_scores)
        record.total_explosive = total_explosive(record.explosive_upper, record.z_scores)
