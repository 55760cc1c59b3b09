"""
Unit tests for person_tracking.store and person_tracking.lifecycle.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from person_tracking.config import TrackerConfig
from person_tracking.lifecycle import LifecyclePolicy
from person_tracking.matcher import TrackedPerson
from person_tracking.store import TrackState, TrackStore


def _state(track_id: int, x: float = 50.0) -> TrackState:
    return TrackState(
        track_id=track_id,
        smoothed_x=x,
        smoothed_y=100.0,
        last_box=(x - 50.0, 0.0, x + 50.0, 200.0),
        label=f"Person {track_id + 1}",
    )


def _person(track_id: int) -> TrackedPerson:
    return TrackedPerson(track_id=track_id, bbox=(0.0, 0.0, 100.0, 200.0))


@pytest.fixture
def store() -> TrackStore:
    s = TrackStore()
    for i in range(3):
        s.upsert(_state(i, x=50.0 + 150.0 * i))
    return s


# ---------------------------------------------------------------------------
# TrackStore
# ---------------------------------------------------------------------------

class TestTrackStore:

    def test_insertion_order(self, store):
        assert [s.track_id for s in store.all_states()] == [0, 1, 2]
        assert len(store) == 3
        assert 1 in store

    def test_get_and_remove(self, store):
        assert store.get(1).smoothed_x == pytest.approx(200.0)
        removed = store.remove(1)
        assert removed.track_id == 1
        assert store.get(1) is None
        assert store.remove(1) is None

    def test_upsert_replaces(self, store):
        replacement = _state(2, x=999.0)
        store.upsert(replacement)
        assert store.get(2) is replacement
        assert len(store) == 3

    def test_mark_selected_is_exclusive(self, store):
        store.mark_selected(1)
        assert [s.selected for s in store.all_states()] == [False, True, False]
        store.mark_selected(2)
        assert [s.selected for s in store.all_states()] == [False, False, True]
        assert store.is_selected(2)
        assert not store.is_selected(1)

    def test_unknown_selection_clears_all(self, store):
        store.mark_selected(0)
        store.mark_selected(42)
        assert not any(s.selected for s in store.all_states())
        assert store.selected_id == 42
        assert not store.is_selected(42)

    def test_none_clears_selection(self, store):
        store.mark_selected(0)
        store.mark_selected(None)
        assert store.selected_id is None
        assert not any(s.selected for s in store.all_states())

    def test_pending_selection_applies_on_upsert(self, store):
        store.mark_selected(3)
        store.upsert(_state(3))
        assert store.is_selected(3)

    def test_upsert_forces_unselected_for_other_ids(self, store):
        store.mark_selected(0)
        s = _state(5)
        s.selected = True
        store.upsert(s)
        assert not store.is_selected(5)
        assert store.is_selected(0)

    def test_iteration_snapshot_allows_removal(self, store):
        for s in store:
            store.remove(s.track_id)
        assert len(store) == 0

    def test_clear(self, store):
        store.mark_selected(0)
        store.clear()
        assert len(store) == 0
        assert store.selected_id is None


# ---------------------------------------------------------------------------
# LifecyclePolicy
# ---------------------------------------------------------------------------

class TestLifecyclePolicy:

    def test_ids_are_monotonic_from_zero(self):
        policy = LifecyclePolicy()
        assert [policy.next_id() for _ in range(4)] == [0, 1, 2, 3]
        assert policy.total_ids_assigned == 4

    def test_label(self):
        policy = LifecyclePolicy()
        assert policy.label_for(0) == "Person 1"
        assert policy.label_for(9) == "Person 10"

    def test_thresholds(self):
        policy = LifecyclePolicy(max_missing=45, selected_max_missing=300)
        s = _state(0)
        assert policy.expiry_threshold(s) == 45
        s.selected = True
        assert policy.expiry_threshold(s) == 300

    def test_expiry_is_strictly_greater(self):
        policy = LifecyclePolicy(max_missing=45)
        s = _state(0)
        s.missing_frames = 45
        assert not policy.is_expired(s)
        s.missing_frames = 46
        assert policy.is_expired(s)

    def test_auto_select_single_output(self):
        store = TrackStore()
        store.upsert(_state(7))
        assert LifecyclePolicy.should_auto_select([_person(7)], store) == 7

    def test_auto_select_counts_output_not_store(self, store):
        # three live identities, only one of them seen this frame
        assert LifecyclePolicy.should_auto_select([_person(1)], store) == 1

    def test_no_auto_select_when_selected_or_many(self, store):
        persons = [_person(0), _person(1)]
        assert LifecyclePolicy.should_auto_select(persons, store) is None
        assert LifecyclePolicy.should_auto_select([], TrackStore()) is None
        single = TrackStore()
        single.upsert(_state(0))
        single.mark_selected(0)
        assert LifecyclePolicy.should_auto_select([_person(0)], single) is None

    def test_requested_selection_without_state_blocks(self):
        store = TrackStore()
        store.upsert(_state(0))
        store.mark_selected(7)
        assert LifecyclePolicy.should_auto_select([_person(0)], store) is None


# ---------------------------------------------------------------------------
# TrackerConfig validation
# ---------------------------------------------------------------------------

class TestTrackerConfig:

    def test_defaults(self):
        cfg = TrackerConfig()
        weights = (cfg.horizontal_weight, cfg.vertical_weight, cfg.iou_weight, cfg.size_weight)
        assert weights == pytest.approx((0.35, 0.15, 0.25, 0.25))
        assert cfg.ema_alpha == pytest.approx(0.4)
        assert cfg.min_match_score == pytest.approx(0.35)
        assert (cfg.max_missing, cfg.selected_max_missing) == (45, 300)

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValueError):
            TrackerConfig(horizontal_weight=0.5)

    def test_alpha_range(self):
        with pytest.raises(ValueError):
            TrackerConfig(ema_alpha=0.0)

    def test_unknown_assignment(self):
        with pytest.raises(ValueError):
            TrackerConfig(assignment="hungarian")
