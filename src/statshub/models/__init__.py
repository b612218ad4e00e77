"""Typed records for snapshots, history and aggregated state."""

from statshub.models.snapshot import COUNTER_KEYS, HistoryEntry, Snapshot
from statshub.models.state import AggregatedState, StatsView

__all__ = [
    "COUNTER_KEYS",
    "AggregatedState",
    "HistoryEntry",
    "Snapshot",
    "StatsView",
]
