"""
Frame-to-frame association of person detections with tracked identities.

Per frame:
  1. Empty store      → every detection becomes a new identity.
  2. Score every (state, detection) pair from four signals:
       horizontal  1 - clamp(|Δx| / (W * max_horizontal_dist_ratio), 0, 1)
       vertical    1 - clamp(|Δy| / (H * max_vertical_dist_ratio),   0, 1)
       iou         IoU(state.last_box, detection.rect)
       size        area_similarity(state.last_box, detection.rect)
     Δx / Δy are measured from the state's EMA-smoothed centroid.
     combined = Σ weight·signal; pairs below min_match_score are dropped.
  3. Assign: greedy best-first over a stable descending sort, or optimal
     maximum-weight matching (scipy) when configured.
  4. Matched states: EMA centroid update, last_box ← detection, missing ← 0.
  5. Unmatched detections spawn fresh identities.
  6. Unmatched states age by one frame and are removed once past their
     expiry threshold (longer for the selected identity).

All scores are computed before the store is touched.

Output order is matched records (assignment order) then new identities
(detection order).  Unmatched-but-live identities are not emitted: their
boxes would be stale, but they stay in the store for re-matching.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import linear_sum_assignment
from scipy.spatial.distance import cdist

from .config import TrackerConfig
from .detection import Detection
from .geometry import (
    Rect,
    area_similarity,
    area_similarity_matrix,
    centroids,
    intersection_over_union,
    iou_matrix,
)
from .lifecycle import LifecyclePolicy
from .store import TrackState, TrackStore

_log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TrackedPerson:
    """One tracked person in the current frame's output."""

    track_id: int
    bbox: Rect
    selected: bool = False
    label: str = ""
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["bbox"] = list(self.bbox)
        return out


@dataclass(frozen=True)
class MatchScore:
    """Per-signal breakdown of one (state, detection) pair."""

    horizontal: float
    vertical: float
    iou: float
    size: float
    combined: float


# ---------------------------------------------------------------------------
# Matcher
# ---------------------------------------------------------------------------

class Matcher:
    """
    Multi-signal scorer and assigner.  Stateless apart from its config and
    the lifecycle policy's id counter; all track state lives in the store
    passed to match().
    """

    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        policy: Optional[LifecyclePolicy] = None,
    ):
        self.config = config if config is not None else TrackerConfig()
        self.policy = policy if policy is not None else LifecyclePolicy(
            max_missing=self.config.max_missing,
            selected_max_missing=self.config.selected_max_missing,
            label_prefix=self.config.label_prefix,
        )

    # ── scoring ──────────────────────────────────────────────────────────────

    def _gates(self, image_width: float, image_height: float) -> Tuple[float, float]:
        if image_width <= 0 or image_height <= 0:
            raise ValueError(
                f"image size must be positive, got {image_width}x{image_height}"
            )
        return (
            float(image_width) * self.config.max_horizontal_dist_ratio,
            float(image_height) * self.config.max_vertical_dist_ratio,
        )

    def _combine(self, h, v, iou, size):
        c = self.config
        return (
            c.horizontal_weight * h
            + c.vertical_weight * v
            + c.iou_weight * iou
            + c.size_weight * size
        )

    def score_pair(
        self,
        state: TrackState,
        detection: Detection,
        image_width: float,
        image_height: float,
    ) -> MatchScore:
        """Score a single pair. Mirrors one entry of score_matrix()."""
        max_h, max_v = self._gates(image_width, image_height)
        cx, cy = detection.centroid
        h = 1.0 - min(max(abs(state.smoothed_x - cx) / max_h, 0.0), 1.0)
        v = 1.0 - min(max(abs(state.smoothed_y - cy) / max_v, 0.0), 1.0)
        iou = intersection_over_union(state.last_box, detection.rect)
        size = area_similarity(state.last_box, detection.rect)
        return MatchScore(h, v, iou, size, self._combine(h, v, iou, size))

    def score_matrix(
        self,
        states: Sequence[TrackState],
        detections: Sequence[Detection],
        image_width: float,
        image_height: float,
    ) -> np.ndarray:
        """(N_states, N_detections) combined scores, float64."""
        max_h, max_v = self._gates(image_width, image_height)
        n, m = len(states), len(detections)
        if n == 0 or m == 0:
            return np.zeros((n, m), dtype=np.float64)

        state_xy = np.array([(s.smoothed_x, s.smoothed_y) for s in states], np.float64)
        state_boxes = [s.last_box for s in states]
        det_boxes = [d.rect for d in detections]
        det_xy = centroids(det_boxes)

        dx = cdist(state_xy[:, :1], det_xy[:, :1], "cityblock")
        dy = cdist(state_xy[:, 1:], det_xy[:, 1:], "cityblock")
        h = 1.0 - np.clip(dx / max_h, 0.0, 1.0)
        v = 1.0 - np.clip(dy / max_v, 0.0, 1.0)
        iou = iou_matrix(state_boxes, det_boxes)
        size = area_similarity_matrix(state_boxes, det_boxes)
        return self._combine(h, v, iou, size)

    # ── assignment ───────────────────────────────────────────────────────────

    def _assign_greedy(self, scores: np.ndarray) -> List[Tuple[int, int]]:
        if scores.size == 0:
            return []
        m = scores.shape[1]
        flat = scores.ravel()
        # Stable sort: ties resolve in state-major, detection-minor order.
        order = np.argsort(-flat, kind="stable")
        used_rows, used_cols = set(), set()
        pairs: List[Tuple[int, int]] = []
        for idx in order:
            if flat[idx] < self.config.min_match_score:
                break
            row, col = divmod(int(idx), m)
            if row in used_rows or col in used_cols:
                continue
            pairs.append((row, col))
            used_rows.add(row)
            used_cols.add(col)
        return pairs

    def _assign_optimal(self, scores: np.ndarray) -> List[Tuple[int, int]]:
        if scores.size == 0:
            return []
        min_score = self.config.min_match_score
        gated = np.where(scores >= min_score, scores, 0.0)
        rows, cols = linear_sum_assignment(gated, maximize=True)
        pairs = [
            (int(r), int(c)) for r, c in zip(rows, cols)
            if scores[r, c] >= min_score
        ]
        pairs.sort(key=lambda rc: -scores[rc])
        return pairs

    def assign(self, scores: np.ndarray) -> List[Tuple[int, int]]:
        """(row, col) pairs, best score first; each row and col used once."""
        if self.config.assignment == "optimal":
            return self._assign_optimal(scores)
        return self._assign_greedy(scores)

    # ── lifecycle helpers ────────────────────────────────────────────────────

    def _spawn(self, detection: Detection, store: TrackStore) -> TrackedPerson:
        track_id = self.policy.next_id()
        cx, cy = detection.centroid
        state = TrackState(
            track_id=track_id,
            smoothed_x=cx,
            smoothed_y=cy,
            last_box=detection.rect,
            label=self.policy.label_for(track_id),
        )
        store.upsert(state)
        _log.debug("register id=%d center=(%.1f,%.1f)", track_id, cx, cy)
        return TrackedPerson(
            track_id=track_id,
            bbox=detection.rect,
            selected=state.selected,
            label=state.label,
            confidence=detection.confidence,
        )

    def _update(self, state: TrackState, detection: Detection) -> TrackedPerson:
        alpha = self.config.ema_alpha
        cx, cy = detection.centroid
        state.smoothed_x = alpha * cx + (1.0 - alpha) * state.smoothed_x
        state.smoothed_y = alpha * cy + (1.0 - alpha) * state.smoothed_y
        state.last_box = detection.rect
        state.missing_frames = 0
        return TrackedPerson(
            track_id=state.track_id,
            bbox=detection.rect,
            selected=state.selected,
            label=state.label,
            confidence=detection.confidence,
        )

    # ── public API ───────────────────────────────────────────────────────────

    def match(
        self,
        detections: Sequence[Detection],
        store: TrackStore,
        image_width: float,
        image_height: float,
    ) -> List[TrackedPerson]:
        """
        Associate one frame's detections with the identities in *store*.

        Args:
            detections:   This frame's person detections (may be empty).
            store:        Identity store; mutated in place.
            image_width:  Frame width in pixels (distance normalisation).
            image_height: Frame height in pixels.

        Returns:
            TrackedPerson list: matched identities, then new ones.
        """
        self._gates(image_width, image_height)
        detections = list(detections)

        if not len(store):
            return [self._spawn(det, store) for det in detections]

        states = store.all_states()
        scores = self.score_matrix(states, detections, image_width, image_height)
        pairs = self.assign(scores)

        result: List[TrackedPerson] = []
        used_rows, used_cols = set(), set()
        for row, col in pairs:
            state = states[row]
            result.append(self._update(state, detections[col]))
            used_rows.add(row)
            used_cols.add(col)
            _log.debug(
                "match id=%d det=%d score=%.3f", state.track_id, col, scores[row, col]
            )

        for col, det in enumerate(detections):
            if col not in used_cols:
                result.append(self._spawn(det, store))

        for row, state in enumerate(states):
            if row in used_rows:
                continue
            state.missing_frames += 1
            if self.policy.is_expired(state):
                store.remove(state.track_id)
                _log.debug(
                    "expire id=%d after %d missing frames%s",
                    state.track_id, state.missing_frames,
                    " (selected)" if state.selected else "",
                )

        return result
