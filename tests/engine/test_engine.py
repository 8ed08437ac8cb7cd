"""Tests for the performance engine facade.

Covers the full mutate -> rebuild cycle over an in-memory store: test
history, additions, deletions, edits, snapshots and cache invalidation.
"""

import json

import pytest

from combine.engine import PerformanceEngine
from combine.errors import InvalidChangesError, SnapshotNotFoundError
from combine.store.kv import MemoryStore


def dump(engine: PerformanceEngine) -> str:
    return json.dumps([r.model_dump(mode="json") for r in engine.get_current_records()], sort_keys=True)


def test_rebuild_derives_every_baseline_athlete(engine: PerformanceEngine):
    records = engine.get_current_records()

    assert [r.id for r in records] == ["ATH001", "ATH002", "ATH003"]
    marcus = engine.get_athlete("ATH001")
    assert marcus is not None
    assert marcus.forty == pytest.approx(5.2)
    assert marcus.stale_keys == []
    assert "bench" in marcus.z_scores


def test_rebuild_is_idempotent(engine: PerformanceEngine):
    engine.save_test_entry("ATH001", "2024-02-01", "Winter", {"bench_1rm": 235})
    engine.rebuild()
    first = dump(engine)

    engine.rebuild()

    assert dump(engine) == first


def test_unknown_athlete_lookup(engine: PerformanceEngine):
    assert engine.get_athlete("NOPE") is None
    assert engine.get_stale_keys("NOPE") == frozenset()
    assert engine.get_history("NOPE") == []


class TestHistory:
    """Test history writes and their effect on the rebuilt roster."""

    def test_history_value_overrides_baseline(self, engine: PerformanceEngine):
        engine.save_test_entry("ATH001", "2024-02-01", "Winter", {"bench_1rm": 240})
        engine.rebuild()

        marcus = engine.get_athlete("ATH001")
        assert marcus is not None
        assert marcus.bench == 240
        assert marcus.rel_bench == pytest.approx(1.33)

    def test_replace_not_append(self, engine: PerformanceEngine):
        engine.save_test_entry("ATH001", "2024-02-01", "Winter", {"bench_1rm": 240})
        engine.save_test_entry("ATH001", "2024-02-01", "Winter", {"bench_1rm": 250})

        history = engine.get_history("ATH001")
        assert len(history) == 1
        assert history[0].values == {"bench_1rm": 250}

    def test_same_date_different_label_is_a_new_entry(self, engine: PerformanceEngine):
        engine.save_test_entry("ATH001", "2024-02-01", "AM", {"bench_1rm": 240})
        engine.save_test_entry("ATH001", "2024-02-01", "PM", {"squat_1rm": 330})

        assert len(engine.get_history("ATH001")) == 2

    def test_older_values_become_stale(self, engine: PerformanceEngine):
        engine.save_test_entry("ATH001", "2024-01-15", "Winter", {"weight_lb": 182, "sprint_020": 2.95, "vert_in": 31})
        engine.save_test_entry("ATH001", "2024-03-01", "Spring", {"bench_1rm": 245})
        engine.rebuild()

        stale = engine.get_stale_keys("ATH001")
        assert {"weight", "mass_kg", "sprint_020", "v1", "f1", "pow1", "vert", "peak_power", "rel_peak_power"} <= stale
        assert "bench" not in stale
        assert "forty" not in stale
        marcus = engine.get_athlete("ATH001")
        assert marcus is not None
        assert marcus.stale_keys == sorted(stale)
        assert engine.get_previous_values("ATH001")["weight"] == 182

    def test_history_is_listed_newest_first(self, engine: PerformanceEngine):
        engine.save_test_entry("ATH001", "2024-01-15", "Winter", {"bench_1rm": 230})
        engine.save_test_entry("ATH001", "2024-03-01", "Spring", {"bench_1rm": 245})

        assert [e.label for e in engine.get_history("ATH001")] == ["Spring", "Winter"]

    def test_delete_entry(self, engine: PerformanceEngine):
        engine.save_test_entry("ATH001", "2024-02-01", "Winter", {"bench_1rm": 240})

        assert engine.delete_test_entry("ATH001", "2024-02-01", "Winter") is True
        assert engine.delete_test_entry("ATH001", "2024-02-01", "Winter") is False
        assert "ATH001" not in engine.layers.get_test_history()

    def test_delete_entry_accepts_the_date_form_it_was_saved_with(self, engine: PerformanceEngine):
        entry = engine.save_test_entry("ATH001", "20240201", "Winter", {"bench_1rm": 240})

        assert entry.date == "2024-02-01"
        assert engine.delete_test_entry("ATH001", "20240201", "Winter") is True
        assert engine.get_history("ATH001") == []
        assert engine.delete_test_entry("ATH001", "not a date", "Winter") is False

    def test_invalid_entry_is_rejected(self, engine: PerformanceEngine):
        with pytest.raises(InvalidChangesError):
            engine.save_test_entry("ATH001", "2024-02-01", "Winter", {"hang_clean": 200})
        with pytest.raises(InvalidChangesError):
            engine.save_test_entry("ATH001", "02/01/2024", "Winter", {"bench_1rm": 200})

    def test_write_invalidates_cached_staleness(self, engine: PerformanceEngine):
        engine.save_test_entry("ATH001", "2024-01-15", "Winter", {"vert_in": 31})
        engine.save_test_entry("ATH001", "2024-03-01", "Spring", {"bench_1rm": 245})
        assert "vert" in engine.get_stale_keys("ATH001")

        engine.save_test_entry("ATH001", "2024-03-01", "Spring", {"bench_1rm": 245, "vert_in": 32})

        assert "vert" not in engine.get_stale_keys("ATH001")


class TestAthletes:
    """Additions, deletions and manual edits."""

    def test_reads_after_a_mutation_never_return_old_records(self, engine: PerformanceEngine):
        engine.delete_athlete("ATH001")

        assert engine.get_athlete("ATH001") is None
        assert [r.id for r in engine.get_current_records()] == ["ATH002", "ATH003"]

        engine.save_test_entry("ATH002", "2024-01-15", "Winter", {"vert_in": 25})
        engine.save_test_entry("ATH002", "2024-03-01", "Spring", {"bench_1rm": 300})

        devon = engine.get_athlete("ATH002")
        assert devon is not None
        assert "vert" in devon.stale_keys
        assert devon.stale_keys == sorted(engine.get_stale_keys("ATH002"))

    def test_add_athlete_assigns_next_id(self, engine: PerformanceEngine):
        new_id = engine.add_athlete("Jordan Lee", position="RB", grade=10)
        engine.rebuild()

        assert new_id == "ATH004"
        jordan = engine.get_athlete("ATH004")
        assert jordan is not None
        assert jordan.group == "Skill"
        assert jordan.forty is None

    def test_add_athlete_seeds_placeholder_sessions(self, engine: PerformanceEngine):
        engine.save_test_entry("ATH001", "2024-02-01", "Winter", {"bench_1rm": 240})

        new_id = engine.add_athlete("Jordan Lee")

        history = engine.get_history(new_id)
        assert [(e.date, e.label, e.values) for e in history] == [("2024-02-01", "Winter", {})]

    def test_add_athlete_requires_name(self, engine: PerformanceEngine):
        with pytest.raises(InvalidChangesError):
            engine.add_athlete("   ")

    def test_delete_keeps_orphaned_history_for_readd(self, engine: PerformanceEngine):
        engine.save_test_entry("ATH003", "2024-02-01", "Winter", {"vert_in": 29})
        engine.delete_athlete("ATH003")
        engine.rebuild()

        assert engine.get_athlete("ATH003") is None
        assert "ATH003" in engine.layers.get_test_history()

        engine.add_athlete("Sam Ortiz", position="LB", athlete_id="ATH003")
        engine.rebuild()

        sam = engine.get_athlete("ATH003")
        assert sam is not None
        assert sam.vert == 29
        assert engine.get_history("ATH003")[0].values == {"vert_in": 29}

    def test_deleting_an_addition_removes_it_from_additions(self, engine: PerformanceEngine):
        new_id = engine.add_athlete("Jordan Lee")
        engine.save_edit(new_id, {"vert_in": 25})

        engine.delete_athlete(new_id)
        engine.rebuild()

        assert engine.get_athlete(new_id) is None
        assert engine.layers.get_additions() == []
        assert engine.layers.get_edits() == []

    def test_edits_accumulate_per_field(self, engine: PerformanceEngine):
        engine.save_edit("ATH002", {"bench_1rm": 285}, timestamp="2024-02-01T10:00:00+00:00")
        engine.save_edit("ATH002", {"position": "DL"}, timestamp="2024-02-02T10:00:00+00:00")
        engine.rebuild()

        edits = engine.layers.get_edits()
        assert len(edits) == 1
        assert edits[0].changes == {"bench_1rm": 285, "position": "DL"}
        assert edits[0].timestamp == "2024-02-02T10:00:00+00:00"
        devon = engine.get_athlete("ATH002")
        assert devon is not None
        assert devon.bench == 285
        assert devon.group == "Linemen"

    def test_edit_beats_newer_history(self, engine: PerformanceEngine):
        engine.save_test_entry("ATH001", "2024-02-01", "Winter", {"bench_1rm": 210})
        engine.save_edit("ATH001", {"bench_1rm": 220}, timestamp="2024-01-15")
        engine.rebuild()

        marcus = engine.get_athlete("ATH001")
        assert marcus is not None
        assert marcus.bench == 220

    def test_edit_older_than_coach_data_is_ignored(self, engine: PerformanceEngine):
        engine.save_edit("ATH001", {"bench_1rm": 220}, timestamp="2023-06-01")
        engine.rebuild()

        marcus = engine.get_athlete("ATH001")
        assert marcus is not None
        assert marcus.bench == 225

    def test_edit_can_clear_a_field(self, engine: PerformanceEngine):
        engine.save_edit("ATH001", {"vert_in": None})
        engine.rebuild()

        marcus = engine.get_athlete("ATH001")
        assert marcus is not None
        assert marcus.vert is None
        assert marcus.peak_power is None

    def test_invalid_edit_is_rejected(self, engine: PerformanceEngine):
        with pytest.raises(InvalidChangesError):
            engine.save_edit("ATH001", {"shoe_size": 11})
        with pytest.raises(InvalidChangesError):
            engine.save_edit("ATH001", {"bench_1rm": "heavy"})
        assert engine.layers.get_edits() == []

    def test_undo_edits(self, engine: PerformanceEngine):
        engine.save_edit("ATH001", {"bench_1rm": 300})

        assert engine.undo_edits("ATH001") is True
        assert engine.undo_edits("ATH001") is False
        engine.rebuild()
        marcus = engine.get_athlete("ATH001")
        assert marcus is not None
        assert marcus.bench == 225

    def test_reset_to_baseline_keeps_history(self, engine: PerformanceEngine):
        engine.add_athlete("Jordan Lee")
        engine.delete_athlete("ATH002")
        engine.save_edit("ATH001", {"bench_1rm": 300})
        engine.save_test_entry("ATH003", "2024-02-01", "Winter", {"vert_in": 29})

        engine.reset_to_baseline()
        engine.rebuild()

        assert [r.id for r in engine.get_current_records()] == ["ATH001", "ATH002", "ATH003"]
        sam = engine.get_athlete("ATH003")
        assert sam is not None
        assert sam.vert == 29
        status = engine.data_status()
        assert not status.modified
        assert status.history_entries >= 1


class TestSnapshots:
    """Capture, restore and delete."""

    def test_restore_reproduces_captured_roster(self, engine: PerformanceEngine):
        engine.add_athlete("Jordan Lee", position="RB")
        engine.delete_athlete("ATH002")
        engine.save_edit("ATH001", {"bench_1rm": 260})
        engine.rebuild()
        captured = dump(engine)

        snapshot_id = engine.capture_snapshot("Spring")
        engine.save_edit("ATH003", {"bench_1rm": 100})
        engine.add_athlete("Extra Person")
        engine.rebuild()
        assert dump(engine) != captured

        engine.restore_snapshot(snapshot_id)
        engine.rebuild()

        assert dump(engine) == captured
        assert engine.layers.get_edits() == []
        assert engine.layers.get_additions() == []
        assert engine.layers.get_baseline().meta["restored_from_snapshot"] == snapshot_id

    def test_restore_keeps_an_edit_that_beat_test_history(self, engine: PerformanceEngine):
        engine.save_test_entry("ATH001", "2024-02-01", "Winter", {"bench_1rm": 210})
        engine.save_edit("ATH001", {"bench_1rm": 220})
        engine.rebuild()
        captured = dump(engine)

        snapshot_id = engine.capture_snapshot("Spring")
        engine.undo_edits("ATH001")
        marcus = engine.get_athlete("ATH001")
        assert marcus is not None
        assert marcus.bench == 210

        engine.restore_snapshot(snapshot_id)
        engine.rebuild()

        assert dump(engine) == captured
        assert [(e.id, e.changes) for e in engine.layers.get_edits()] == [("ATH001", {"bench_1rm": 220})]

    def test_list_and_replace_by_name(self, engine: PerformanceEngine):
        first = engine.capture_snapshot("Spring")
        second = engine.capture_snapshot("Spring")
        engine.capture_snapshot("Summer")

        summaries = engine.list_snapshots()
        assert [s.name for s in summaries] == ["Spring", "Summer"]
        assert first not in {s.id for s in summaries}
        assert second in {s.id for s in summaries}
        assert summaries[0].athlete_count == 3

    def test_unknown_snapshot_raises(self, engine: PerformanceEngine):
        with pytest.raises(SnapshotNotFoundError):
            engine.restore_snapshot("missing")
        with pytest.raises(SnapshotNotFoundError):
            engine.delete_snapshot("missing")

    def test_delete_snapshot(self, engine: PerformanceEngine):
        snapshot_id = engine.capture_snapshot("Spring")

        engine.delete_snapshot(snapshot_id)

        assert engine.list_snapshots() == []


class RecordingEvaluator:
    def __init__(self) -> None:
        self.seen: list[str] = []

    def evaluate(self, records):
        self.seen = [r.id for r in records]
        return len(records)


def test_evaluate_hands_current_roster_to_service(engine: PerformanceEngine):
    evaluator = RecordingEvaluator()

    assert engine.evaluate(evaluator) == 3
    assert evaluator.seen == ["ATH001", "ATH002", "ATH003"]


def test_data_quality_over_current_roster(engine: PerformanceEngine):
    report = engine.data_quality()

    assert {w.metric for w in report.warnings} >= {"Broad Jump"}


def test_malformed_layer_does_not_block_rebuild(memory_store: MemoryStore, engine: PerformanceEngine):
    memory_store.set("test:edits", "[{broken")

    engine.rebuild()

    assert len(engine.get_current_records()) == 3
