"""In-memory state store.

This is the only component allowed to replace the aggregated state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from statshub.models._base import utcnow
from statshub.models.snapshot import Snapshot
from statshub.models.state import AggregatedState
from statshub.state.merge import DEFAULT_HISTORY_LIMIT, merge

_logger = logging.getLogger(__name__)


class StateStore:
    """Owner of the single :class:`AggregatedState` value.

    Readers get the current immutable value without locking; the reference
    is swapped in one assignment after each merge. Writers serialize on an
    :class:`asyncio.Lock`, so every merge starts from the fully merged
    result of the previous one.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = utcnow,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        self._clock = clock
        self._history_limit = history_limit
        self._state = AggregatedState(last_updated=clock())
        self._lock = asyncio.Lock()
        self._merges = 0

    @property
    def history_limit(self) -> int:
        return self._history_limit

    @property
    def merge_count(self) -> int:
        """Merges applied since this store was created."""
        return self._merges

    def current(self) -> AggregatedState:
        """Return the state as of this call."""
        return self._state

    async def apply_merge(self, snapshot: Snapshot, *, bot_version: str = "unknown") -> AggregatedState:
        """Merge *snapshot* into the state and install the result."""
        async with self._lock:
            merged = merge(
                self._state,
                snapshot,
                now=self._clock(),
                bot_version=bot_version,
                history_limit=self._history_limit,
            )
            self._state = merged
            self._merges += 1
        return merged

    def load_from(self, persisted: AggregatedState) -> None:
        """Replace the state wholesale. Only used before serving starts."""
        self._state = persisted.truncated(self._history_limit)
        _logger.debug(
            "State loaded: active_sessions=%s history=%d user_agents=%d",
            persisted.active_sessions,
            len(self._state.history),
            len(persisted.user_agents),
        )
