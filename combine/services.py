"""Interfaces of the collaborators that consume the rebuilt roster.

Grade tiers and cohort percentiles live outside this package; the engine
only guarantees their inputs (raw and derived metric values).
"""

from __future__ import annotations

from typing import Any, Protocol

from models.athlete import AthleteRecord


class PerformanceEvaluator(Protocol):
    """Grading or statistics service fed with the current roster."""

    def evaluate(self, records: list[AthleteRecord]) -> Any: ...
