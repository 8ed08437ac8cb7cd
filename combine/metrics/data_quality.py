"""Data quality assessment for a derived roster.

Roster warnings flag metrics measured on too few athletes for percentiles
or z-scores to mean much. Athlete flags point at values that are probably
data-entry mistakes. Nothing here alters the data.
"""

from __future__ import annotations

from pydantic import BaseModel

from models.athlete import AthleteRecord

MIN_ROSTER_SAMPLE = 5

_SPARSE_METRIC_MESSAGES: tuple[tuple[str, str, str], ...] = (
    ("vert", "Vertical Jump", "Vert, Peak Power, and related z-scores are based on very few data points."),
    ("broad", "Broad Jump", "Broad jump data is too sparse for reliable percentiles."),
    ("forty", "Sprint / 40-yd", "Sprint data is limited; velocity and force metrics should be interpreted cautiously."),
)


class RosterWarning(BaseModel):
    metric: str
    n: int
    message: str


class AthleteFlag(BaseModel):
    athlete_id: str
    athlete_name: str
    message: str


class DataQualityReport(BaseModel):
    warnings: list[RosterWarning]
    flags: list[AthleteFlag]


def assess_data_quality(records: list[AthleteRecord]) -> DataQualityReport:
    """Assess roster coverage and suspicious individual values.

    Rules:
        - Fewer than 5 athletes with vert, broad or forty -> roster warning
        - Bench above squat -> athlete flag
        - Squat below 0.4x body weight -> athlete flag
    """
    warnings: list[RosterWarning] = []
    for key, label, message in _SPARSE_METRIC_MESSAGES:
        n = sum(1 for r in records if r.metric(key) is not None)
        if n < MIN_ROSTER_SAMPLE:
            warnings.append(RosterWarning(metric=label, n=n, message=message))

    flags: list[AthleteFlag] = []
    for r in records:
        if r.bench is not None and r.squat is not None and r.bench > r.squat:
            flags.append(
                AthleteFlag(
                    athlete_id=r.id,
                    athlete_name=r.name,
                    message=f"Bench ({r.bench:g}) > Squat ({r.squat:g}); verify data.",
                )
            )
        if r.squat is not None and r.weight and r.squat / r.weight < 0.4:
            flags.append(
                AthleteFlag(
                    athlete_id=r.id,
                    athlete_name=r.name,
                    message=f"Squat ({r.squat:g} lb) is very low relative to body weight ({r.weight:g} lb); possible data entry error.",
                )
            )

    return DataQualityReport(warnings=warnings, flags=flags)
