"""Stale-key propagation over derived metrics.

A derived metric is stale when the raw measurements it is computed from
were carried over from an older test session. The rules are a fixed,
static graph:

- ``DERIVES``: source key -> keys computed from it. Walked transitively, so
  a stale source marks its whole downstream chain.
- ``ALL_OF``: derived key -> raw keys that must *all* be stale. Used for
  whole-sprint aggregates, which stay fresh while any split is fresh.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping

DERIVES: Mapping[str, frozenset[str]] = {
    # Body mass
    "weight": frozenset({"mass_kg"}),
    # Sprint phase 1 (0-20 yd)
    "sprint_020": frozenset({"v1"}),
    "v1": frozenset({"a1", "mom1"}),
    "a1": frozenset({"f1"}),
    "f1": frozenset({"imp1", "pow1"}),
    # Sprint phase 2 (20-30 yd)
    "sprint_2030": frozenset({"v2"}),
    "v2": frozenset({"a2", "mom2"}),
    "a2": frozenset({"f2"}),
    "f2": frozenset({"imp2", "pow2"}),
    # Sprint phase 3 (30-40 yd)
    "sprint_3040": frozenset({"v3"}),
    "v3": frozenset({"a3", "mom3"}),
    "a3": frozenset({"f3"}),
    "f3": frozenset({"imp3", "pow3"}),
    # Strength and throw ratios
    "bench": frozenset({"rel_bench"}),
    "squat": frozenset({"rel_squat"}),
    "medball": frozenset({"mb_rel"}),
    # Jump power
    "vert": frozenset({"peak_power"}),
    "peak_power": frozenset({"rel_peak_power"}),
}

SPRINT_SPLITS = frozenset({"sprint_020", "sprint_2030", "sprint_3040"})

ALL_OF: Mapping[str, frozenset[str]] = {
    "forty": SPRINT_SPLITS,
    "v_max": SPRINT_SPLITS,
    "v10_max": SPRINT_SPLITS,
    "top_mph": SPRINT_SPLITS,
    "mom_max": SPRINT_SPLITS,
}


def downstream(key: str) -> frozenset[str]:
    """Every key reachable from ``key`` through ``DERIVES``."""
    seen: set[str] = set()
    queue = deque(DERIVES.get(key, ()))
    while queue:
        current = queue.popleft()
        if current in seen:
            continue
        seen.add(current)
        queue.extend(DERIVES.get(current, ()))
    return frozenset(seen)


def propagate_stale(raw_stale: Iterable[str]) -> frozenset[str]:
    """Extend a set of stale raw keys to every dependent derived key.

    Args:
        raw_stale: Raw metric keys resolved from an older session

    Returns:
        The raw keys plus every derived key that depends on them
    """
    raw = frozenset(raw_stale)
    stale = set(raw)
    for key in raw:
        stale |= downstream(key)
    for derived, required in ALL_OF.items():
        if required <= raw:
            stale.add(derived)
    return frozenset(stale)
