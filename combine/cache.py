"""Explicit caches derived from the merged roster.

Each cache is owned by one engine instance and must be invalidated whenever
any layer changes. Nothing here is persisted.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Generic, TypeVar

from loguru import logger

from models.athlete import AthleteRecord

V = TypeVar("V")


class AthleteCache(Generic[V]):
    """Per-athlete memo of a value computed from the layers."""

    def __init__(self, name: str):
        self.name = name
        self._entries: dict[str, V] = {}

    def get_or_compute(self, athlete_id: str, compute: Callable[[], V]) -> V:
        if athlete_id in self._entries:
            return self._entries[athlete_id]
        value = compute()
        self._entries[athlete_id] = value
        return value

    def invalidate(self) -> None:
        if self._entries:
            logger.debug(f"{self.name}: cache cleared ({len(self._entries)} entries)")
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class AthleteIndex:
    """Identity lookup over the record list of the last rebuild.

    Empty until ``load()``; ``invalidate()`` drops the records as well as the
    id map, so nothing from before a layer change is ever returned.
    """

    def __init__(self) -> None:
        self._by_id: dict[str, AthleteRecord] | None = None
        self._records: list[AthleteRecord] = []

    def load(self, records: Iterable[AthleteRecord]) -> None:
        self._records = list(records)
        self._by_id = None

    def get(self, athlete_id: str) -> AthleteRecord | None:
        if self._by_id is None:
            self._by_id = {r.id: r for r in self._records}
        return self._by_id.get(athlete_id)

    def invalidate(self) -> None:
        if self._records:
            logger.debug(f"athlete_index: cache cleared ({len(self._records)} records)")
        self._records = []
        self._by_id = None
