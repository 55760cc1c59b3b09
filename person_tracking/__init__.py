"""
person_tracking
===============
Multi-person identity tracking across video frames.

Per frame, unlabeled person boxes from an external detector are matched to
persistent identities using EMA-smoothed centroids, IoU and size
similarity, with an extended grace period for the selected identity.

Quick-start
-----------
>>> from person_tracking import PersonTracker, Detection
>>> tracker = PersonTracker()
>>> persons = tracker.update([Detection((0, 0, 100, 200), 0.9)], 640, 480)
>>> persons[0].label
'Person 1'

With a detector model (requires ``ultralytics``):
-------------------------------------------------
>>> from person_tracking import UltralyticsPersonDetector
>>> detector = UltralyticsPersonDetector("yolov8n.pt")
>>> persons = tracker.process_frame(frame, detector)
"""

from .config import DetectorConfig, TrackerConfig
from .geometry import (
    area,
    area_similarity,
    area_similarity_matrix,
    centroid,
    centroids,
    intersection_over_union,
    iou_matrix,
)
from .detection import (
    BaseDetector,
    Detection,
    DetectionResult,
    StaticDetector,
    UltralyticsPersonDetector,
    normalize_detections,
)
from .store import TrackState, TrackStore
from .lifecycle import LifecyclePolicy
from .matcher import Matcher, MatchScore, TrackedPerson
from .tracker import PersonTracker


__all__ = [
    # config
    "DetectorConfig",
    "TrackerConfig",
    # geometry
    "area",
    "area_similarity",
    "area_similarity_matrix",
    "centroid",
    "centroids",
    "intersection_over_union",
    "iou_matrix",
    # detection intake
    "BaseDetector",
    "Detection",
    "DetectionResult",
    "StaticDetector",
    "UltralyticsPersonDetector",
    "normalize_detections",
    # store / lifecycle
    "TrackState",
    "TrackStore",
    "LifecyclePolicy",
    # matching
    "Matcher",
    "MatchScore",
    "TrackedPerson",
    "PersonTracker",
]
