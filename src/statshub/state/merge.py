"""Snapshot merge rules.

This module contains *no* validation or I/O. The gateway guarantees the
required field is present; the :class:`~statshub.models.Snapshot` model has
already dropped malformed optional values. Merge semantics are therefore:

- scalar counters present in the snapshot overwrite, absent ones carry over
- ``userAgents`` is a set union (first-seen order kept)
- ``history`` appends one entry and keeps the last ``history_limit``
- ``lastUpdated`` becomes the ingest time
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from statshub.ingestion.normalize import union_ordered
from statshub.models.snapshot import HistoryEntry, Snapshot
from statshub.models.state import AggregatedState

DEFAULT_HISTORY_LIMIT = 100

_SCALAR_FIELDS: tuple[str, ...] = (
    "active_sessions",
    "total_sessions",
    "stopped_sessions",
    "messages_processed",
    "errors_occurred",
    "avg_duration",
)


def merge(
    current: AggregatedState,
    incoming: Snapshot,
    *,
    now: datetime,
    bot_version: str = "unknown",
    history_limit: int = DEFAULT_HISTORY_LIMIT,
) -> AggregatedState:
    """Combine *current* with *incoming* into a new state value."""
    entry = HistoryEntry.from_snapshot(incoming, timestamp=now, bot_version=bot_version)

    update: dict[str, Any] = {}
    for name in _SCALAR_FIELDS:
        value = getattr(incoming, name)
        if value is not None:
            update[name] = value

    update["user_agents"] = tuple(union_ordered(current.user_agents, list(incoming.user_agents)))
    update["history"] = (*current.history, entry)[-history_limit:]
    update["last_updated"] = now
    update["timestamp"] = now
    update["bot_version"] = bot_version

    return current.model_copy(update=update)
