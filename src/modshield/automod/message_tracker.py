"""
In-memory sliding window of each user's recent messages.

The tracker is owned by the automod engine and passed explicitly to the spam
detector, so separate engines (and tests) never share state. Histories are
keyed by ``(guild_id, user_id)`` and bounded both in time and in length.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Tuple

from modshield.util.logger import get_logger

logger = get_logger("message_tracker")

DEFAULT_WINDOW_MS = 10_000
DEFAULT_MAX_HISTORY = 50

TrackerKey = Tuple[int, int]


@dataclass(frozen=True, slots=True)
class MessageRecord:
    """A message seen from a user: its text, when it arrived, and where."""
    content: str
    timestamp_ms: int
    channel_id: int


class MessageTracker:
    """Bounded per-user history of recent messages.

    Each append-and-prune runs under a lock so concurrent handlers for the
    same user never interleave on one history.

    Args:
        max_history: Maximum records kept per user; the oldest are dropped first.
        retention_ms: How long an idle user's history is kept before
            :meth:`purge_idle` drops it.
    """

    def __init__(self, max_history: int = DEFAULT_MAX_HISTORY, retention_ms: int = DEFAULT_WINDOW_MS) -> None:
        self._max_history = max(1, int(max_history))
        self._retention_ms = int(retention_ms)
        self._histories: Dict[TrackerKey, Deque[MessageRecord]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _prune(history: Deque[MessageRecord], now_ms: int, window_ms: int) -> None:
        # Records arrive in timestamp order, so expired ones are always at the left
        while history and now_ms - history[0].timestamp_ms >= window_ms:
            history.popleft()

    def record(
        self,
        guild_id: int,
        user_id: int,
        channel_id: int,
        content: str,
        now_ms: int,
        window_ms: int = DEFAULT_WINDOW_MS,
        capacity: int = 0,
    ) -> Tuple[MessageRecord, ...]:
        """Append a message to the user's history and drop expired entries.

        Args:
            guild_id: Guild the message was sent in.
            user_id: Author of the message.
            channel_id: Channel the message was sent in.
            content: Message text.
            now_ms: Current time in epoch milliseconds.
            window_ms: Entries with ``now_ms - timestamp >= window_ms`` are removed.
            capacity: Minimum number of records to keep for this user. The
                history grows past ``max_history`` to hold it.

        Returns:
            The user's remaining history, oldest first.
        """
        key = (int(guild_id), int(user_id))
        entry = MessageRecord(content=content or "", timestamp_ms=int(now_ms), channel_id=int(channel_id))
        maxlen = max(self._max_history, int(capacity))

        with self._lock:
            history = self._histories.get(key)
            if history is None or history.maxlen < maxlen:
                history = deque(history or (), maxlen=maxlen)
                self._histories[key] = history
            history.append(entry)
            self._prune(history, now_ms, window_ms)
            return tuple(history)

    def recent_for(self, guild_id: int, user_id: int, window_ms: int, now_ms: int) -> Tuple[MessageRecord, ...]:
        """Return the user's records inside the window, oldest first.

        This is a read: the stored history is left untouched. Records stamped
        after ``now_ms`` are excluded.
        """
        key = (int(guild_id), int(user_id))
        with self._lock:
            history = self._histories.get(key)
            if not history:
                return ()
            return tuple(entry for entry in history if 0 <= now_ms - entry.timestamp_ms < window_ms)

    def purge_idle(self, now_ms: int) -> int:
        """Forget users whose newest record is older than the retention window.

        Returns:
            Number of user histories removed.
        """
        with self._lock:
            idle = [
                key for key, history in self._histories.items()
                if not history or now_ms - history[-1].timestamp_ms >= self._retention_ms
            ]
            for key in idle:
                del self._histories[key]

        if idle:
            logger.debug("[MESSAGE TRACKER] Purged %d idle user histories", len(idle))
        return len(idle)

    def clear(self) -> None:
        with self._lock:
            self._histories.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._histories)
