"""
person_tracking.run_tracking
----------------------------
CLI entry point: detect and track people through a video, a directory of
frames, or a file of pre-computed detections, writing one JSON line per
processed frame.

Output line schema::

    {"frame": 12, "persons": [{"track_id": 0, "bbox": [x1, y1, x2, y2],
                               "selected": true, "label": "Person 1",
                               "confidence": 0.91}, ...]}

Usage examples
--------------
Track people in a video with YOLOv8n on CPU::

    python -m person_tracking.run_tracking \\
        --video_path data/workout.mp4 \\
        --output outputs/tracks.jsonl

Select identity 0 and use optimal assignment::

    python -m person_tracking.run_tracking \\
        --frames_dir data/frames/ --select 0 --assignment optimal

Replay pre-computed detections (no model needed)::

    python -m person_tracking.run_tracking \\
        --detections_json data/detections.json --auto_select

The detections file holds ``{"width": W, "height": H, "frames": [...]}``
where each frame is a list of ``{"rect": [x1, y1, x2, y2], "confidence": c,
"label": "person"}`` objects, or ``null`` for a frame whose detector call
failed.  ``--conf`` and ``--max_results`` filter replayed frames too.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from itertools import islice
from pathlib import Path
from typing import Iterator, List, Optional, TextIO, Tuple

import cv2
import numpy as np

from .config import DetectorConfig, TrackerConfig
from .detection import StaticDetector
from .tracker import PersonTracker

_log = logging.getLogger(__name__)

_IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".bmp"}


# ---------------------------------------------------------------------------
# Video / frame-dir iterators
# ---------------------------------------------------------------------------

def _take_strided(
    indexed: Iterator[Tuple[int, np.ndarray]],
    stride: int,
    max_frames: Optional[int],
) -> Iterator[Tuple[int, np.ndarray]]:
    """Keep items whose index is a multiple of *stride*, at most *max_frames*."""
    kept = ((idx, item) for idx, item in indexed if idx % stride == 0)
    return islice(kept, max_frames)


def _read_video(video_path: str) -> Iterator[Tuple[int, np.ndarray]]:
    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        raise FileNotFoundError(f"Cannot open video: {video_path}")
    try:
        idx = 0
        ok, frame = cap.read()
        while ok:
            yield idx, frame
            idx += 1
            ok, frame = cap.read()
    finally:
        cap.release()


def _read_frames_dir(frames_dir: str, stride: int) -> Iterator[Tuple[int, np.ndarray]]:
    """Images sorted by name; only every *stride*-th file is decoded."""
    images = sorted(
        p for p in Path(frames_dir).iterdir()
        if p.suffix.lower() in _IMAGE_EXTS
    )
    for idx in range(0, len(images), stride):
        frame = cv2.imread(str(images[idx]))
        if frame is None:
            _log.warning("Skipping unreadable image %s", images[idx])
            continue
        yield idx, frame


def iter_source_frames(
    video_path: Optional[str] = None,
    frames_dir: Optional[str] = None,
    stride: int = 1,
    max_frames: Optional[int] = None,
) -> Iterator[Tuple[int, np.ndarray]]:
    """Yield (frame_idx, bgr_frame) from a video file or an image directory."""
    if video_path:
        return _take_strided(_read_video(video_path), stride, max_frames)
    return _take_strided(_read_frames_dir(frames_dir, stride), stride, max_frames)


# ---------------------------------------------------------------------------
# Detections file
# ---------------------------------------------------------------------------

def load_detections_json(
    path: str,
    conf: float = 0.0,
    max_results: Optional[int] = None,
) -> Tuple[int, int, StaticDetector]:
    """Read a detections file into (width, height, StaticDetector).

    *conf* and *max_results* are applied to every replayed frame, the same
    way the live detector applies them.
    """
    with open(path, "r", encoding="utf-8") as fh:
        payload = json.load(fh)
    width = int(payload["width"])
    height = int(payload["height"])
    frames: List = []
    for i, entry in enumerate(payload["frames"]):
        if entry is None:
            frames.append(RuntimeError(f"detector failure recorded at frame {i}"))
            continue
        frames.append([
            (d["rect"], d.get("confidence", 1.0), d.get("label", "person"))
            for d in entry
        ])
    return width, height, StaticDetector(frames, conf=conf, max_results=max_results)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def _write_frame(out: TextIO, frame_idx: int, persons) -> None:
    out.write(json.dumps({
        "frame": frame_idx,
        "persons": [p.to_dict() for p in persons],
    }) + "\n")


def run_pipeline(args: argparse.Namespace, out: TextIO) -> PersonTracker:
    """Run detection + tracking for the source named in *args*."""
    tracker = PersonTracker(TrackerConfig(
        assignment=args.assignment,
        auto_select=args.auto_select,
        max_missing=args.max_missing,
        selected_max_missing=args.selected_max_missing,
    ))
    if args.select is not None:
        tracker.set_selected(args.select)

    if args.detections_json:
        width, height, detector = load_detections_json(
            args.detections_json, conf=args.conf, max_results=args.max_results
        )
        n_frames = len(detector)
        if args.max_frames is not None:
            n_frames = min(n_frames, args.max_frames)
        for frame_idx in range(n_frames):
            result = detector.detect_safe(None)
            persons = tracker.update_from_result(result, width, height)
            _write_frame(out, frame_idx, persons)
        return tracker

    from .detection import UltralyticsPersonDetector

    det_cfg = DetectorConfig(
        model_name=args.model,
        conf=args.conf,
        max_results=args.max_results,
        device=args.device,
    )
    detector = UltralyticsPersonDetector(
        model_name=det_cfg.model_name,
        category=det_cfg.category,
        conf=det_cfg.conf,
        max_results=det_cfg.max_results,
        device=det_cfg.device,
    )
    frames = iter_source_frames(
        args.video_path, args.frames_dir, args.stride, args.max_frames
    )

    try:
        for frame_idx, frame in frames:
            persons = tracker.process_frame(frame, detector)
            _write_frame(out, frame_idx, persons)
    finally:
        detector.close()
    _log.info(
        "Detector: %d requests, avg %.1f ms", detector.n_requests, detector.avg_inference_ms
    )
    return tracker


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Track people across video frames with stable identities.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--video_path", type=str, help="Input video file.")
    src.add_argument("--frames_dir", type=str, help="Directory of frame images.")
    src.add_argument("--detections_json", type=str,
                     help="Pre-computed per-frame detections (no model).")

    p.add_argument("--output", type=str, default="-",
                   help="JSONL output path ('-' = stdout).")
    p.add_argument("--model", type=str, default=DetectorConfig.model_name)
    p.add_argument("--device", type=str, default=DetectorConfig.device)
    p.add_argument("--conf", type=float, default=DetectorConfig.conf)
    p.add_argument("--max_results", type=int, default=DetectorConfig.max_results)
    p.add_argument("--select", type=int, default=None,
                   help="Identity to select from the start.")
    p.add_argument("--auto_select", action="store_true",
                   help="Select the only person in a frame while nothing is selected.")
    p.add_argument("--assignment", choices=("greedy", "optimal"), default="greedy")
    p.add_argument("--max_missing", type=int, default=TrackerConfig.max_missing)
    p.add_argument("--selected_max_missing", type=int,
                   default=TrackerConfig.selected_max_missing)
    p.add_argument("--stride", type=int, default=1)
    p.add_argument("--max_frames", type=int, default=None)
    p.add_argument("--log_level", type=str, default="INFO",
                   choices=("DEBUG", "INFO", "WARNING", "ERROR"))
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.output == "-":
        tracker = run_pipeline(args, sys.stdout)
    else:
        Path(args.output).parent.mkdir(parents=True, exist_ok=True)
        with open(args.output, "w", encoding="utf-8") as out:
            tracker = run_pipeline(args, out)

    _log.info(
        "Processed %d frames (%d detector failures); %d identities assigned, %d live",
        tracker.frame_count, tracker.failed_frames,
        tracker.total_ids_assigned, tracker.active_count(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
