"""Test history resolution.

Collapses an athlete's dated test sessions into one "latest known value per
metric" view and records which metrics were carried over from an older
session than the athlete's newest session with data.

Properties:
- Deterministic: entries are ordered by date (newest first); ties keep
  insertion order
- Pure: input entries are never modified
- Missing history is not an error: it resolves to an empty view
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from combine.metrics.fields import METRIC_BY_JSON_KEY, TEST_METRICS, is_present
from models.history import TestHistoryEntry


@dataclass(frozen=True)
class ResolvedHistory:
    """Newest value per persisted key plus the date that supplied it.

    Attributes:
        latest_values: persisted key -> newest present value
        source_dates: persisted key -> date of the entry supplying it
        newest_data_date: date of the newest entry holding any data
    """

    latest_values: dict[str, Any] = field(default_factory=dict)
    source_dates: dict[str, str] = field(default_factory=dict)
    newest_data_date: str | None = None

    @property
    def stale_raw_keys(self) -> frozenset[str]:
        """Metric keys whose value predates the newest session with data."""
        if self.newest_data_date is None:
            return frozenset()
        stale: set[str] = set()
        for metric in TEST_METRICS:
            found = self.source_dates.get(metric.json_key)
            if found is not None and found < self.newest_data_date:
                stale.add(metric.key)
        return frozenset(stale)


EMPTY_HISTORY = ResolvedHistory()


def sort_newest_first(entries: Iterable[TestHistoryEntry]) -> list[TestHistoryEntry]:
    # sorted() is stable under reverse=True, so same-date entries keep insertion order
    return sorted(entries, key=lambda e: e.date, reverse=True)


def resolve_history(entries: Iterable[TestHistoryEntry] | None) -> ResolvedHistory:
    """Resolve an athlete's history into latest values and source dates.

    Args:
        entries: The athlete's test entries in any order (None = no history)

    Returns:
        ResolvedHistory; empty when there are no entries

    Rules:
        - For each key the first present value in newest-first order wins
        - newest_data_date skips placeholder entries with no populated value
    """
    if not entries:
        return EMPTY_HISTORY

    ordered = sort_newest_first(entries)
    latest_values: dict[str, Any] = {}
    source_dates: dict[str, str] = {}
    newest_data_date: str | None = None

    for entry in ordered:
        if newest_data_date is None and entry.has_data():
            newest_data_date = entry.date
        for key, value in entry.values.items():
            if key in latest_values or not is_present(value):
                continue
            latest_values[key] = value
            source_dates[key] = entry.date

    return ResolvedHistory(
        latest_values=latest_values,
        source_dates=source_dates,
        newest_data_date=newest_data_date,
    )


def previous_values(resolved: ResolvedHistory) -> dict[str, Any]:
    """Last known value per metric key, for "fallback, styled stale" cells.

    Adds ``forty`` from the three splits when all of them are known.
    """
    values: dict[str, Any] = {}
    for json_key, value in resolved.latest_values.items():
        metric = METRIC_BY_JSON_KEY.get(json_key)
        if metric is not None:
            values[metric.key] = value

    splits = [values.get("sprint_020"), values.get("sprint_2030"), values.get("sprint_3040")]
    if all(isinstance(s, (int, float)) for s in splits) and not values.get("forty"):
        values["forty"] = round(sum(splits), 2)
    return values
