"""
person_tracking.config
----------------------
Configuration dataclasses for the person tracker and the detector adapter.
All parameters have documented defaults.  Override only the fields you need.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional


_ASSIGNMENT_MODES = ("greedy", "optimal")


@dataclass
class TrackerConfig:
    """Full configuration for :class:`~person_tracking.tracker.PersonTracker`.

    Smoothing
    ---------
    ema_alpha : EMA weight of a new centroid observation.
        ``new = alpha * observed + (1 - alpha) * previous``.  Higher values
        react faster but smooth less.  Must lie in (0, 1].

    Match scoring
    -------------
    horizontal_weight, vertical_weight, iou_weight, size_weight :
        Weights of the four match signals.  Must sum to 1.  Horizontal
        position dominates because lateral position is the most stable
        signal during floor exercises; vertical position is the least
        reliable one.
    max_horizontal_dist_ratio : horizontal gate as a fraction of frame width.
    max_vertical_dist_ratio   : vertical gate as a fraction of frame height.
    min_match_score : pairs scoring below this are never matched.
    assignment : ``'greedy'`` (best-first) or ``'optimal'``
        (maximum-weight bipartite matching via scipy).

    Lifecycle
    ---------
    max_missing          : frames an unselected identity survives unmatched.
    selected_max_missing : frames the selected identity survives unmatched.
    label_prefix         : display label is ``label_prefix + str(id + 1)``.
    auto_select          : select the only person output in a frame when
                           no selection has been requested.
    """

    # ── Smoothing ─────────────────────────────────────────────────────────────
    ema_alpha: float = 0.4

    # ── Match scoring ─────────────────────────────────────────────────────────
    horizontal_weight: float = 0.35
    vertical_weight: float = 0.15
    iou_weight: float = 0.25
    size_weight: float = 0.25
    max_horizontal_dist_ratio: float = 0.35
    max_vertical_dist_ratio: float = 0.50
    min_match_score: float = 0.35
    assignment: str = "greedy"      # 'greedy' | 'optimal'

    # ── Lifecycle ─────────────────────────────────────────────────────────────
    max_missing: int = 45            # ~1.5 s at 30 fps
    selected_max_missing: int = 300  # ~10 s at 30 fps
    label_prefix: str = "Person "
    auto_select: bool = False

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise :class:`ValueError` if any field is out of range."""
        if not 0.0 < self.ema_alpha <= 1.0:
            raise ValueError(f"ema_alpha must be in (0, 1], got {self.ema_alpha}")
        weights = (
            self.horizontal_weight,
            self.vertical_weight,
            self.iou_weight,
            self.size_weight,
        )
        if any(w < 0.0 for w in weights):
            raise ValueError(f"match weights must be non-negative, got {weights}")
        if not math.isclose(sum(weights), 1.0, abs_tol=1e-6):
            raise ValueError(f"match weights must sum to 1, got {sum(weights):.6f}")
        if self.max_horizontal_dist_ratio <= 0 or self.max_vertical_dist_ratio <= 0:
            raise ValueError("distance gate ratios must be positive")
        if self.assignment not in _ASSIGNMENT_MODES:
            raise ValueError(
                f"Unknown assignment '{self.assignment}'. "
                f"Choose from: {', '.join(repr(m) for m in _ASSIGNMENT_MODES)}."
            )
        if self.max_missing < 0 or self.selected_max_missing < 0:
            raise ValueError("expiry thresholds must be >= 0")


@dataclass
class DetectorConfig:
    """Configuration for the person-detector adapter.

    model_name     : Ultralytics weights file, auto-downloaded on first use.
    category       : detector category kept by intake (case-insensitive).
    conf           : minimum detector confidence.
    max_results    : keep only the top-N detections per frame
                     (``None`` = no cap).
    device         : ``'cpu'``, ``'cuda'``, ``'cuda:0'``, ...
    """

    model_name: str = "yolov8n.pt"
    category: str = "person"
    conf: float = 0.35
    max_results: Optional[int] = 3
    device: str = "cpu"
