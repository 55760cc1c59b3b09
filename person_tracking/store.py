"""
Tracked-identity store.

One TrackState per live identity, keyed by the integer identity and kept in
creation order.  All mutation goes through TrackStore methods; the matcher
is the single writer and runs once per frame.  Not thread-safe: callers
serialise frame processing.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterator, List, Optional

from .geometry import Rect

_log = logging.getLogger(__name__)


@dataclass
class TrackState:
    """Persistent state for one tracked person."""

    track_id: int
    smoothed_x: float
    smoothed_y: float
    last_box: Rect
    label: str
    selected: bool = False
    missing_frames: int = 0

    @property
    def smoothed_center(self):
        return self.smoothed_x, self.smoothed_y


class TrackStore:
    """Identity → TrackState mapping with single-selection bookkeeping."""

    def __init__(self) -> None:
        self._states: "OrderedDict[int, TrackState]" = OrderedDict()
        self._selected_id: Optional[int] = None

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, track_id: object) -> bool:
        return track_id in self._states

    def __iter__(self) -> Iterator[TrackState]:
        return iter(list(self._states.values()))

    def all_states(self) -> List[TrackState]:
        """Snapshot of live states in creation order."""
        return list(self._states.values())

    def get(self, track_id: int) -> Optional[TrackState]:
        return self._states.get(track_id)

    def upsert(self, state: TrackState) -> None:
        """Insert or replace *state*. A state whose id is the requested
        selection comes in selected; any other is forced unselected."""
        state.selected = (
            self._selected_id is not None and state.track_id == self._selected_id
        )
        self._states[state.track_id] = state

    def remove(self, track_id: int) -> Optional[TrackState]:
        return self._states.pop(track_id, None)

    def clear(self) -> None:
        self._states.clear()
        self._selected_id = None

    # ── selection ────────────────────────────────────────────────────────────

    @property
    def selected_id(self) -> Optional[int]:
        """Requested selection, whether or not a live state carries it."""
        return self._selected_id

    def mark_selected(self, track_id: Optional[int]) -> None:
        """Select *track_id* and deselect every other state.

        An unknown id (or None) leaves every live state unselected.
        """
        self._selected_id = track_id
        for state in self._states.values():
            state.selected = track_id is not None and state.track_id == track_id
        if track_id is not None and track_id not in self._states:
            _log.debug("selected id=%d has no live state", track_id)

    def is_selected(self, track_id: int) -> bool:
        state = self._states.get(track_id)
        return bool(state is not None and state.selected)
