"""
PersonTracker: per-session facade over the identity store and matcher.

Owns one TrackStore, one LifecyclePolicy (id counter) and one Matcher.
Call update() (or process_frame()) exactly once per frame, serially; the
store is not safe for concurrent mutation.

Selection is an explicit input: pass ``selected_id=`` to update() (applied
before matching) or call set_selected() between frames.  It only affects
expiry grace and the ``selected`` flag on output records.
"""

import logging
from typing import Any, List, Optional, Sequence

from .config import TrackerConfig
from .detection import BaseDetector, Detection, DetectionResult
from .lifecycle import LifecyclePolicy
from .matcher import Matcher, TrackedPerson
from .store import TrackStore

_log = logging.getLogger(__name__)

# Sentinel distinguishing "no selection change" from "clear selection" (None).
UNSET = object()


class PersonTracker:
    """
    Stable person identities across frames.

    Example
    -------
    tracker = PersonTracker()
    persons = tracker.update(detections, 640, 480)
    tracker.set_selected(persons[0].track_id)
    """

    def __init__(self, config: Optional[TrackerConfig] = None):
        self.config = config if config is not None else TrackerConfig()
        self.store = TrackStore()
        self.policy = LifecyclePolicy(
            max_missing=self.config.max_missing,
            selected_max_missing=self.config.selected_max_missing,
            label_prefix=self.config.label_prefix,
        )
        self.matcher = Matcher(self.config, self.policy)
        self.frame_count = 0
        self.failed_frames = 0

    @property
    def tracker_name(self) -> str:
        c = self.config
        return (
            f"PersonTracker(assign={c.assignment}, alpha={c.ema_alpha}, "
            f"max_gone={c.max_missing}/{c.selected_max_missing})"
        )

    # ── selection ────────────────────────────────────────────────────────────

    def set_selected(self, track_id: Optional[int]) -> None:
        """Declare the identity of interest (None clears the selection)."""
        self.store.mark_selected(track_id)

    def is_selected(self, track_id: int) -> bool:
        return self.store.is_selected(track_id)

    @property
    def selected_id(self) -> Optional[int]:
        return self.store.selected_id

    # ── per-frame API ────────────────────────────────────────────────────────

    def update(
        self,
        detections: Sequence[Detection],
        image_width: float,
        image_height: float,
        selected_id: Any = UNSET,
    ) -> List[TrackedPerson]:
        """
        Process one frame of detections.

        Args:
            detections:   Person detections for this frame.
            image_width:  Frame width in pixels.
            image_height: Frame height in pixels.
            selected_id:  New selection to apply before matching
                          (omit to keep the current one, None to clear).

        Returns:
            TrackedPerson list for identities observed this frame.
        """
        if selected_id is not UNSET:
            self.set_selected(selected_id)

        persons = self.matcher.match(detections, self.store, image_width, image_height)
        self.frame_count += 1

        if self.config.auto_select:
            auto_id = self.policy.should_auto_select(persons, self.store)
            if auto_id is not None:
                _log.info("auto-selecting sole identity id=%d", auto_id)
                self.set_selected(auto_id)

        return persons

    def update_from_result(
        self,
        result: DetectionResult,
        image_width: float,
        image_height: float,
        selected_id: Any = UNSET,
    ) -> List[TrackedPerson]:
        """update() for a detector result; a failed result counts as no detections."""
        if not result.ok:
            self.failed_frames += 1
            _log.warning(
                "frame %d: detector failed (%s); aging %d identities",
                self.frame_count, type(result.error).__name__, len(self.store),
            )
            detections: Sequence[Detection] = []
        else:
            detections = result.detections
        return self.update(detections, image_width, image_height, selected_id=selected_id)

    def process_frame(
        self,
        frame: Any,
        detector: BaseDetector,
        selected_id: Any = UNSET,
    ) -> List[TrackedPerson]:
        """Detect persons in a (H, W[, C]) frame array and track them."""
        height, width = frame.shape[:2]
        result = detector.detect_safe(frame)
        return self.update_from_result(result, width, height, selected_id=selected_id)

    # ── housekeeping ─────────────────────────────────────────────────────────

    def reset(self) -> None:
        """Forget every identity and the selection.

        Numbering continues from where it was, so ids issued before the reset
        are never handed out again.
        """
        self.store.clear()
        self.frame_count = 0
        self.failed_frames = 0

    def active_count(self) -> int:
        """Live identities, including ones unmatched this frame."""
        return len(self.store)

    @property
    def total_ids_assigned(self) -> int:
        return self.policy.total_ids_assigned
