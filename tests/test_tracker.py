"""
Unit tests for person_tracking.tracker.PersonTracker: selection handling,
detector-failure folding and session bookkeeping.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from person_tracking.config import TrackerConfig
from person_tracking.detection import Detection, DetectionResult, StaticDetector
from person_tracking.tracker import PersonTracker

W, H = 640, 480
BOX = (0.0, 0.0, 100.0, 200.0)


def _det(rect=BOX, conf=0.9) -> Detection:
    return Detection(rect, conf)


class TestSelection:

    def test_selected_id_applied_before_matching(self):
        t = PersonTracker()
        t.update([_det()], W, H)
        out = t.update([_det()], W, H, selected_id=0)
        assert out[0].selected is True
        assert t.is_selected(0)

    def test_selection_persists_between_frames(self):
        t = PersonTracker()
        t.update([_det()], W, H, selected_id=0)
        out = t.update([_det()], W, H)
        assert out[0].selected is True

    def test_none_clears(self):
        t = PersonTracker()
        t.update([_det()], W, H)
        t.set_selected(0)
        out = t.update([_det()], W, H, selected_id=None)
        assert out[0].selected is False
        assert t.selected_id is None

    def test_unknown_selection_clears_flags(self):
        t = PersonTracker()
        t.update([_det()], W, H, selected_id=0)
        t.set_selected(17)
        assert not t.is_selected(0)
        assert not t.is_selected(17)

    def test_selected_identity_gets_long_grace(self):
        t = PersonTracker()
        t.update([_det(), _det((400.0, 0.0, 500.0, 200.0))], W, H, selected_id=1)
        for _ in range(46):
            t.update([], W, H)
        assert t.active_count() == 1
        assert t.store.get(1) is not None
        assert t.store.get(0) is None


class TestAutoSelect:

    def test_sole_identity_is_auto_selected_after_frame(self):
        t = PersonTracker(TrackerConfig(auto_select=True))
        first = t.update([_det()], W, H)
        assert first[0].selected is False
        assert t.is_selected(0)
        second = t.update([_det()], W, H)
        assert second[0].selected is True

    def test_no_auto_select_with_two_identities(self):
        t = PersonTracker(TrackerConfig(auto_select=True))
        t.update([_det(), _det((400.0, 0.0, 500.0, 200.0))], W, H)
        assert t.selected_id is None

    def test_requested_selection_is_kept(self):
        t = PersonTracker(TrackerConfig(auto_select=True))
        t.set_selected(7)
        out = t.update([_det()], W, H)
        assert out[0].track_id == 0
        assert t.selected_id == 7
        assert not t.is_selected(0)

    def test_only_visible_person_counts(self):
        t = PersonTracker(TrackerConfig(auto_select=True))
        t.update([_det(), _det((400.0, 0.0, 500.0, 200.0))], W, H)
        assert t.selected_id is None
        out = t.update([_det()], W, H)
        assert [p.track_id for p in out] == [0]
        assert t.active_count() == 2
        assert t.selected_id == 0
        assert t.is_selected(0)

    def test_disabled_by_default(self):
        t = PersonTracker()
        t.update([_det()], W, H)
        assert not t.is_selected(0)


class TestDetectorFailure:

    def test_failed_result_ages_without_creating(self):
        t = PersonTracker()
        t.update([_det()], W, H)
        out = t.update_from_result(DetectionResult(error=RuntimeError("boom")), W, H)
        assert out == []
        assert t.store.get(0).missing_frames == 1
        assert t.total_ids_assigned == 1
        assert t.failed_frames == 1

    def test_failure_does_not_reset_tracking(self):
        t = PersonTracker()
        detector = StaticDetector([
            [(BOX, 0.9, "person")],
            RuntimeError("transient"),
            RuntimeError("transient"),
            [((4.0, 0.0, 104.0, 200.0), 0.9, "person")],
        ])
        frame = np.zeros((H, W, 3), dtype=np.uint8)
        outputs = [t.process_frame(frame, detector) for _ in range(4)]
        assert [len(o) for o in outputs] == [1, 0, 0, 1]
        assert outputs[3][0].track_id == 0
        assert t.failed_frames == 2
        assert t.frame_count == 4

    def test_process_frame_uses_frame_shape(self):
        t = PersonTracker()
        detector = StaticDetector([[(BOX, 0.9, "person"), (BOX, 0.8, "cat")]])
        out = t.process_frame(np.zeros((H, W, 3), dtype=np.uint8), detector)
        assert len(out) == 1
        assert out[0].confidence == pytest.approx(0.9)


class TestBookkeeping:

    def test_reset(self):
        t = PersonTracker()
        t.update([_det(), _det((400.0, 0.0, 500.0, 200.0))], W, H, selected_id=0)
        t.reset()
        assert t.active_count() == 0
        assert t.selected_id is None
        assert t.total_ids_assigned == 2
        out = t.update([_det()], W, H)
        assert out[0].track_id == 2
        assert out[0].label == "Person 3"
        assert out[0].selected is False

    def test_tracker_name(self):
        assert "greedy" in PersonTracker().tracker_name

    def test_to_dict(self):
        t = PersonTracker()
        d = t.update([_det()], W, H)[0].to_dict()
        assert d == {
            "track_id": 0,
            "bbox": [0.0, 0.0, 100.0, 200.0],
            "selected": False,
            "label": "Person 1",
            "confidence": pytest.approx(0.9),
        }
