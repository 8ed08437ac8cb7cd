"""Root conftest for all tests.

Shared fixtures: an in-memory key-value store, a small coach baseline and an
engine rebuilt on top of them.
"""

from typing import Any

import pytest

from combine.engine import PerformanceEngine
from combine.store.kv import MemoryStore


def make_athlete(athlete_id: str, name: str, **fields: Any) -> dict[str, Any]:
    athlete: dict[str, Any] = {
        "id": athlete_id,
        "name": name,
        "position": None,
        "sport": "Football",
        "grade": 11,
        "height_in": 70,
        "weight_lb": None,
        "bench_1rm": None,
        "squat_1rm": None,
        "medball_in": None,
        "vert_in": None,
        "broad_in": None,
        "sprint_020": None,
        "sprint_2030": None,
        "sprint_3040": None,
    }
    athlete.update(fields)
    return athlete


@pytest.fixture
def sample_baseline() -> dict[str, Any]:
    """Three-athlete coach export."""
    return {
        "athletes": [
            make_athlete(
                "ATH001",
                "Marcus Reed",
                position="WR",
                weight_lb=180,
                bench_1rm=225,
                squat_1rm=315,
                medball_in=300,
                vert_in=30,
                broad_in=110,
                sprint_020=3.0,
                sprint_2030=1.2,
                sprint_3040=1.0,
                lastUpdated="2024-01-01",
            ),
            make_athlete(
                "ATH002",
                "Devon Hall",
                position="OL",
                grade=12,
                weight_lb=280,
                bench_1rm=275,
                squat_1rm=405,
                medball_in=320,
                vert_in=22,
                sprint_020=3.4,
                sprint_2030=1.4,
                sprint_3040=1.35,
                lastUpdated="2024-01-01",
            ),
            make_athlete(
                "ATH003",
                "Sam Ortiz",
                position="LB",
                weight_lb=200,
                bench_1rm=185,
                squat_1rm=300,
                medball_in=280,
                vert_in=26,
            ),
        ],
        "meta": {"source": "workbook"},
    }


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def engine(memory_store: MemoryStore, sample_baseline: dict[str, Any]) -> PerformanceEngine:
    """Engine with the sample baseline loaded and rebuilt."""
    engine = PerformanceEngine(memory_store, namespace="test")
    engine.load_baseline(sample_baseline)
    engine.rebuild()
    return engine
