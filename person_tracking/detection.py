"""
Person detection intake: detector adapters and raw-output normalisation.

Architecture:
  BaseDetector (ABC)                common interface, failure folding, stats
  ├── UltralyticsPersonDetector     any Ultralytics detection model (YOLOv8, YOLO11, …)
  └── StaticDetector                replays pre-computed per-frame detections

Raw detector output is a list of ``(rect, confidence, category_label)``
triples per frame.  normalize_detections() turns it into Detection records:

  * only the category of interest is kept (case-insensitive, "person")
  * triples sharing the same rect are one detector record with several
    categories; the highest matching confidence wins
  * first-appearance order is preserved

Failure handling:
  detect() may raise.  detect_safe() never raises for an Exception; the
  error is logged and returned inside a DetectionResult with no detections,
  which the tracker folds into an empty frame (all identities age one tick).
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from statistics import mean
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .geometry import Rect, area, centroid

_log = logging.getLogger(__name__)

RawDetection = Tuple[Sequence[float], float, str]


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Detection:
    """One person box for one frame. Discarded after assignment."""

    rect: Rect
    confidence: float

    @property
    def centroid(self) -> Tuple[float, float]:
        return centroid(self.rect)

    @property
    def area(self) -> float:
        return area(self.rect)


@dataclass
class DetectionResult:
    """Result of one detector call: detections, or the error that replaced them."""

    detections: List[Detection] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------

def normalize_detections(
    raw: Iterable[RawDetection],
    category: str = "person",
    min_confidence: float = 0.0,
    max_results: Optional[int] = None,
) -> List[Detection]:
    """
    Filter raw detector triples to *category* and collapse them to Detections.

    Args:
        raw:            ``(rect, confidence, category_label)`` triples.
        category:       Category of interest, compared case-insensitively.
        min_confidence: Records below this confidence are dropped.
        max_results:    Keep only the top-N by confidence (stable for ties).

    Returns:
        Detection list in first-appearance order.
    """
    wanted = category.lower()
    best: dict = {}
    for rect, confidence, label in raw:
        if str(label).lower() != wanted:
            continue
        key = tuple(float(v) for v in rect)
        if len(key) != 4:
            raise ValueError(f"rect must have 4 coordinates, got {rect!r}")
        conf = float(confidence)
        if key not in best or conf > best[key]:
            best[key] = conf

    dets = [
        Detection(rect=key, confidence=conf)
        for key, conf in best.items()
        if conf >= min_confidence
    ]
    if max_results is not None and len(dets) > max_results:
        keep = sorted(range(len(dets)), key=lambda i: -dets[i].confidence)[:max_results]
        dets = [dets[i] for i in sorted(keep)]
    return dets


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------

class BaseDetector(ABC):
    """
    Abstract person-detector interface with failure folding and latency stats.

    Args:
        category:    Detector category kept by intake.
        conf:        Minimum confidence.
        max_results: Per-frame cap on returned detections (None = no cap).
    """

    def __init__(
        self,
        category: str = "person",
        conf: float = 0.35,
        max_results: Optional[int] = None,
    ):
        self.category    = category
        self.conf        = conf
        self.max_results = max_results
        self._latencies: List[float] = []

    # ── must override ────────────────────────────────────────────────────────

    @abstractmethod
    def _raw_detections(self, frame: Any) -> List[RawDetection]:
        """Run the underlying model and return raw triples."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Human-readable model identifier."""
        ...

    # ── public API ───────────────────────────────────────────────────────────

    def detect(self, frame: Any) -> List[Detection]:
        """Detect persons in *frame*. May raise whatever the model raises."""
        t0 = time.perf_counter()
        raw = self._raw_detections(frame)
        self._latencies.append(time.perf_counter() - t0)
        return normalize_detections(
            raw,
            category=self.category,
            min_confidence=self.conf,
            max_results=self.max_results,
        )

    def detect_safe(self, frame: Any) -> DetectionResult:
        """Like detect(), but a failure becomes an empty, errored result."""
        try:
            return DetectionResult(detections=self.detect(frame))
        except Exception as exc:
            _log.exception("Person detection failed (%s)", self.model_name)
            return DetectionResult(detections=[], error=exc)

    def close(self) -> None:
        """Release model resources. Default: nothing to release."""

    # ── stats API ────────────────────────────────────────────────────────────

    def reset_stats(self) -> None:
        self._latencies = []

    @property
    def avg_inference_ms(self) -> float:
        return mean(self._latencies) * 1000 if self._latencies else 0.0

    @property
    def n_requests(self) -> int:
        return len(self._latencies)


# ---------------------------------------------------------------------------
# Ultralytics backend
# ---------------------------------------------------------------------------

class UltralyticsPersonDetector(BaseDetector):
    """
    Person detector backed by any Ultralytics detection model.

    Examples
    --------
    UltralyticsPersonDetector("yolov8n.pt")
    UltralyticsPersonDetector("yolo11s.pt", conf=0.3, max_results=5, device="cuda")
    """

    def __init__(
        self,
        model_name: str = "yolov8n.pt",
        category: str = "person",
        conf: float = 0.35,
        max_results: Optional[int] = 3,
        device: str = "cpu",
    ):
        super().__init__(category=category, conf=conf, max_results=max_results)
        try:
            from ultralytics import YOLO
        except ImportError:
            raise ImportError("pip install ultralytics")

        self._model_name = model_name
        self.device = device
        _log.info("Loading %s on %s ...", model_name, device)
        self._model = YOLO(model_name)
        self._model.to(device)

    @property
    def model_name(self) -> str:
        return self._model_name

    def _raw_detections(self, frame: np.ndarray) -> List[RawDetection]:
        results = self._model(frame, conf=self.conf, verbose=False, device=self.device)[0]
        if results.boxes is None:
            return []
        names = results.names
        raw: List[RawDetection] = []
        for box in results.boxes:
            cls_id = int(box.cls[0].item())
            x1, y1, x2, y2 = box.xyxy[0].tolist()
            raw.append(((x1, y1, x2, y2), float(box.conf[0].item()), names[cls_id]))
        return raw


# ---------------------------------------------------------------------------
# Replay backend
# ---------------------------------------------------------------------------

class StaticDetector(BaseDetector):
    """
    Replays pre-computed raw detections, one list of triples per call.

    An entry that is an ``Exception`` instance is raised instead, which lets
    callers exercise the detector-failure path.  Calls past the end of the
    sequence return no detections.
    """

    def __init__(
        self,
        frames: Sequence[Any],
        category: str = "person",
        conf: float = 0.0,
        max_results: Optional[int] = None,
    ):
        super().__init__(category=category, conf=conf, max_results=max_results)
        self._frames = list(frames)
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def model_name(self) -> str:
        return f"StaticDetector({len(self._frames)} frames)"

    def _raw_detections(self, frame: Any) -> List[RawDetection]:
        if self._cursor >= len(self._frames):
            return []
        entry = self._frames[self._cursor]
        self._cursor += 1
        if isinstance(entry, Exception):
            raise entry
        return list(entry)
