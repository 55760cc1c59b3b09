"""
Identity lifecycle: numbering, labels, expiry grace periods, auto-selection.

Identities are handed out by a monotonic counter starting at 0 and are never
reused, so a person who reappears after expiry gets a fresh identity.
Selection only changes how long an unmatched identity survives; it never
changes match scores.
"""

import logging
from typing import Optional, Sequence

from .store import TrackState, TrackStore

_log = logging.getLogger(__name__)


class LifecyclePolicy:
    """
    Expiry thresholds and identity numbering.

    Args:
        max_missing:          Consecutive unmatched frames an unselected
                              identity survives.  Removed on frame
                              ``max_missing + 1``.
        selected_max_missing: Same, for the selected identity.
        label_prefix:         Display label prefix (``"Person "``).
    """

    def __init__(
        self,
        max_missing:          int = 45,
        selected_max_missing: int = 300,
        label_prefix:         str = "Person ",
    ):
        self.max_missing          = max_missing
        self.selected_max_missing = selected_max_missing
        self.label_prefix         = label_prefix
        self._next_id: int = 0

    # ── numbering ────────────────────────────────────────────────────────────

    def next_id(self) -> int:
        track_id = self._next_id
        self._next_id += 1
        return track_id

    def label_for(self, track_id: int) -> str:
        return f"{self.label_prefix}{track_id + 1}"

    @property
    def total_ids_assigned(self) -> int:
        """Identities created so far, including retired ones."""
        return self._next_id

    # ── expiry ───────────────────────────────────────────────────────────────

    def expiry_threshold(self, state: TrackState) -> int:
        return self.selected_max_missing if state.selected else self.max_missing

    def is_expired(self, state: TrackState) -> bool:
        return state.missing_frames > self.expiry_threshold(state)

    # ── selection ────────────────────────────────────────────────────────────

    @staticmethod
    def should_auto_select(persons: Sequence, store: TrackStore) -> Optional[int]:
        """Id of the only person output this frame, if no selection is requested.

        A requested selection blocks this even when it has no live state.
        Live identities that were not output this frame are not counted.
        """
        if store.selected_id is not None or len(persons) != 1:
            return None
        return persons[0].track_id
