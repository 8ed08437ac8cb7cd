"""Error types for the combine engine.

Almost every data problem the engine meets is recovered locally (malformed
collections become empty, orphaned edits are skipped, non-finite numbers
become null). The types here are the few conditions a caller must see.
"""


class CombineError(RuntimeError):
    """Base class for caller-visible engine errors."""


class SnapshotNotFoundError(CombineError):
    """Raised when restoring or deleting a snapshot id that does not exist.

    This is an expected condition (stale UI selection, typo on the CLI) and
    should be reported to the user, not logged as a storage failure.
    """

    def __init__(self, snapshot_id: str):
        self.snapshot_id = snapshot_id
        super().__init__(f"Snapshot not found: {snapshot_id}")


class InvalidChangesError(CombineError, ValueError):
    """Raised when an edit or test entry names unknown fields or bad values."""
