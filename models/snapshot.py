from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from models.athlete import AthleteEdit

SNAPSHOT_FORMAT_VERSION = 1


class SnapshotSummary(BaseModel):
    id: str
    name: str
    created_at: str
    athlete_count: int


class Snapshot(BaseModel):
    """Self-contained, versioned copy of the resolved roster.

    ``athletes`` hold persisted-field records with additions, deletions,
    test history and edits already folded in, so a snapshot can become a
    baseline on its own.

    ``pinned_edits`` keep the edited test fields whose value beat test
    history at capture time. History survives a restore, so these are
    re-issued as edits to keep the frozen values.
    """

    format_version: int = SNAPSHOT_FORMAT_VERSION
    id: str
    name: str
    created_at: str
    athletes: list[dict[str, Any]] = Field(default_factory=list)
    constants: dict[str, float] | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    pinned_edits: list[AthleteEdit] = Field(default_factory=list)

    def summary(self) -> SnapshotSummary:
        return SnapshotSummary(
            id=self.id,
            name=self.name,
            created_at=self.created_at,
            athlete_count=len(self.athletes),
        )
