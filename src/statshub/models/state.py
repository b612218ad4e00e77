"""Aggregated state models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field, model_validator

from statshub.models._base import HubBaseModel, utcnow
from statshub.models.snapshot import HistoryEntry, _clean_snapshot_values


class AggregatedState(HubBaseModel):
    """The current merged view of every snapshot received so far.

    Instances are frozen; the store swaps whole values, so a reader holding
    one always sees counters and history from the same merge.
    """

    active_sessions: int = 0
    total_sessions: int = 0
    stopped_sessions: int = 0
    messages_processed: int = 0
    errors_occurred: int = 0
    avg_duration: float = 0.0
    user_agents: tuple[str, ...] = ()
    history: tuple[HistoryEntry, ...] = ()
    last_updated: datetime = Field(default_factory=utcnow)
    timestamp: datetime | None = None
    """Ingest time of the most recent snapshot."""
    bot_version: str | None = None
    """Producer version reported with the most recent snapshot."""

    @model_validator(mode="before")
    @classmethod
    def _clean(cls, values: Any) -> Any:
        """Drop malformed values so a damaged checkpoint keeps what is usable."""
        if not isinstance(values, dict):
            return values
        cleaned = _clean_snapshot_values(values)
        if "history" in cleaned:
            history = cleaned["history"]
            if isinstance(history, (list, tuple)):
                cleaned["history"] = [item for item in history if isinstance(item, (dict, HistoryEntry))]
            else:
                cleaned.pop("history")
        return cleaned

    def truncated(self, history_limit: int) -> AggregatedState:
        """Copy of this state keeping only the last *history_limit* entries."""
        if len(self.history) <= history_limit:
            return self
        kept = self.history[-history_limit:] if history_limit > 0 else ()
        return self.model_copy(update={"history": kept})


class StatsView(AggregatedState):
    """Answer to a stats query: the state plus environment-derived fields."""

    uptime: float
    """Seconds since the service started."""
    server_time: datetime
