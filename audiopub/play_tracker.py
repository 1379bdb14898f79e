"""
Play-count deduplication.

A viewer replaying the same audio within the window (12 hours by default)
only counts once. Entries are checked for expiry when read and the map is
capped; when full, the least recently registered entries are dropped.

One instance is shared by the process (see dependencies.get_play_tracker).
"""

import logging
import threading
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Optional

from .constants import MIN_LISTEN_SECONDS, MIN_LISTEN_FRACTION

logger = logging.getLogger(__name__)


def minimum_listen_seconds(duration: float) -> float:
    """How long a viewer must have listened before a play is reported."""
    return min(MIN_LISTEN_SECONDS, duration * MIN_LISTEN_FRACTION)


class PlayTracker:
    """Bounded, time-indexed map of ``"{viewer}-{audio_id}" -> last counted play``."""

    def __init__(self, window: timedelta = timedelta(hours=12), max_entries: int = 100_000):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.window = window
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, datetime]" = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def make_key(viewer: str, audio_id: str) -> str:
        return f"{viewer}-{audio_id}"

    def register(self, viewer: str, audio_id: str, now: Optional[datetime] = None) -> bool:
        """
        Record a play if none was counted for this viewer and audio within the window.

        Returns:
            True if the play should be counted.
        """
        now = now or datetime.utcnow()
        key = self.make_key(viewer, audio_id)

        with self._lock:
            last = self._entries.get(key)
            if last is not None and now - last < self.window:
                return False

            self._entries[key] = now
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Play tracker full, evicted {evicted}")
            return True

    def last_play(self, viewer: str, audio_id: str) -> Optional[datetime]:
        with self._lock:
            return self._entries.get(self.make_key(viewer, audio_id))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
