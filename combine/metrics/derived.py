"""Derived sprint, strength and power metrics.

Maps one resolved raw athlete record (persisted field names) to an
``AthleteRecord`` carrying unit conversions, segment sprint physics and
strength/power ratios.

Sprint model (40 yd split into 0-20, 20-30, 30-40 yd):
- v_i = segment distance / segment time
- a1 = v1 / t1 (from standstill), a_i = (v_i - v_{i-1}) / t_i
- F_i = m * a_i, impulse_i = F_i * t_i, momentum_i = m * v_i, P_i = F_i * v_i

Properties:
- Pure and deterministic: same raw record, same output
- Null-propagating: a metric whose input is missing is None, never 0
- Non-finite intermediate results are treated as missing
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from loguru import logger

from combine.metrics.constants import DEFAULT_CONSTANTS, PhysicsConstants
from combine.metrics.fields import DEFAULT_SPORT, initials, position_group, to_number, to_text
from models.athlete import AthleteRecord


def rd(value: float | None, digits: int) -> float | None:
    """Round, mapping None and non-finite values to None."""
    if value is None or not math.isfinite(value):
        return None
    return round(value, digits)


def _mul(a: float | None, b: float | None, digits: int) -> float | None:
    if a is None or b is None:
        return None
    return rd(a * b, digits)


def _div(a: float | None, b: float | None, digits: int) -> float | None:
    """a / b, None when either is missing or b is not positive."""
    if a is None or b is None or b <= 0:
        return None
    return rd(a / b, digits)


def _max_present(*values: float | None) -> float | None:
    present = [v for v in values if v is not None]
    return rd(max(present), 3) if present else None


def sprint_metrics(
    s020: float | None,
    s2030: float | None,
    s3040: float | None,
    mass_kg: float | None,
    c: PhysicsConstants = DEFAULT_CONSTANTS,
) -> dict[str, float | None]:
    """Segment velocities, accelerations, forces, impulses, momenta and power."""
    forty = rd(s020 + s2030 + s3040, 2) if None not in (s020, s2030, s3040) else None

    v1 = _div(c.twenty_yd_m, s020, 3)
    v2 = _div(c.ten_yd_m, s2030, 3)
    v3 = _div(c.ten_yd_m, s3040, 3)
    v_max = _max_present(v1, v2, v3)
    # Best 10-yd split velocity comes from the flying segments only
    v10_max = _max_present(v2, v3)

    a1 = _div(v1, s020, 3)
    a2 = _div(v2 - v1, s2030, 3) if v1 is not None and v2 is not None else None
    a3 = _div(v3 - v2, s3040, 3) if v2 is not None and v3 is not None else None

    f1 = _mul(mass_kg, a1, 1)
    f2 = _mul(mass_kg, a2, 1)
    f3 = _mul(mass_kg, a3, 1)

    return {
        "forty": forty,
        "v1": v1,
        "v2": v2,
        "v3": v3,
        "v_max": v_max,
        "v10_max": v10_max,
        "top_mph": _mul(v_max, c.ms_to_mph, 1),
        "a1": a1,
        "a2": a2,
        "a3": a3,
        "f1": f1,
        "f2": f2,
        "f3": f3,
        "imp1": _mul(f1, s020, 1),
        "imp2": _mul(f2, s2030, 1),
        "imp3": _mul(f3, s3040, 1),
        "mom1": _mul(mass_kg, v1, 1),
        "mom2": _mul(mass_kg, v2, 1),
        "mom3": _mul(mass_kg, v3, 1),
        "mom_max": _mul(mass_kg, v10_max, 1),
        "pow1": _mul(f1, v1, 1),
        "pow2": _mul(f2, v2, 1),
        "pow3": _mul(f3, v3, 1),
    }


def sayers_peak_power(vert_cm: float | None, mass_kg: float | None, c: PhysicsConstants = DEFAULT_CONSTANTS) -> float | None:
    """Sayers peak power (W) from jump height and body mass, floored at 0.

    The regression goes negative for very light or young athletes.
    """
    if vert_cm is None or mass_kg is None:
        return None
    raw = c.sayers_a * vert_cm + c.sayers_b * mass_kg + c.sayers_c
    return rd(max(0.0, raw), 0)


def strength_metrics(
    *,
    weight: float | None,
    mass_kg: float | None,
    bench: float | None,
    squat: float | None,
    squat_kg: float | None,
    medball: float | None,
    vert_cm: float | None,
    f1: float | None,
    c: PhysicsConstants = DEFAULT_CONSTANTS,
) -> dict[str, float | None]:
    peak_power = sayers_peak_power(vert_cm, mass_kg, c)
    rel_peak_power = _div(peak_power, mass_kg, 1) if peak_power is not None and peak_power > 0 else None
    # Sprint force over the maximal isometric force the squat implies
    strength_util = _div(f1, squat_kg * c.g, 3) if squat_kg is not None else None
    return {
        "rel_bench": _div(bench, weight, 2),
        "rel_squat": _div(squat, weight, 2),
        "mb_rel": _div(medball, weight, 2),
        "peak_power": peak_power,
        "rel_peak_power": rel_peak_power,
        "strength_util": strength_util,
    }


def derive_record(raw: Mapping[str, Any], constants: PhysicsConstants = DEFAULT_CONSTANTS) -> AthleteRecord | None:
    """Derive the enriched record for one resolved raw athlete.

    Args:
        raw: Athlete record keyed by persisted field names
        constants: Conversion factors and regression coefficients

    Returns:
        AthleteRecord, or None when the athlete has no name
    """
    c = constants
    name = to_text(raw.get("name"))
    if not name:
        logger.warning(f"Skipping athlete without a name: id={raw.get('id')!r}")
        return None

    position = to_text(raw.get("position"))
    sport = to_text(raw.get("sport")) or DEFAULT_SPORT
    grade = to_number(raw.get("grade"))
    height = to_number(raw.get("height_in"))
    weight = to_number(raw.get("weight_lb"))
    s020 = to_number(raw.get("sprint_020"))
    s2030 = to_number(raw.get("sprint_2030"))
    s3040 = to_number(raw.get("sprint_3040"))
    vert = to_number(raw.get("vert_in"))
    broad = to_number(raw.get("broad_in"))
    bench = to_number(raw.get("bench_1rm"))
    squat = to_number(raw.get("squat_1rm"))
    medball = to_number(raw.get("medball_in"))

    mass_kg = _mul(weight, c.lb_to_kg, 2)
    vert_cm = _mul(vert, c.in_to_cm, 1)
    squat_kg = _mul(squat, c.lb_to_kg, 1)

    sprint = sprint_metrics(s020, s2030, s3040, mass_kg, c)
    strength = strength_metrics(
        weight=weight,
        mass_kg=mass_kg,
        bench=bench,
        squat=squat,
        squat_kg=squat_kg,
        medball=medball,
        vert_cm=vert_cm,
        f1=sprint["f1"],
        c=c,
    )

    return AthleteRecord(
        id=str(raw["id"]),
        name=name,
        initials=initials(name),
        position=position,
        sport=sport,
        grade=grade,
        training_age=max(0.0, grade - 8) if grade is not None else None,
        group=position_group(position, sport),
        last_updated=to_text(raw.get("lastUpdated")),
        height=height,
        weight=weight,
        sprint_020=s020,
        sprint_2030=s2030,
        sprint_3040=s3040,
        sprint_notes=to_text(raw.get("sprint_notes")),
        vert=vert,
        broad=broad,
        bench=bench,
        squat=squat,
        medball=medball,
        pro_agility=to_number(raw.get("pro_agility")),
        l_drill=to_number(raw.get("l_drill")),
        backpedal=to_number(raw.get("backpedal")),
        w_drill=to_number(raw.get("w_drill")),
        height_cm=_mul(height, c.in_to_cm, 1),
        mass_kg=mass_kg,
        vert_cm=vert_cm,
        broad_cm=_mul(broad, c.in_to_cm, 1),
        bench_kg=_mul(bench, c.lb_to_kg, 1),
        squat_kg=squat_kg,
        **sprint,
        **strength,
    )
