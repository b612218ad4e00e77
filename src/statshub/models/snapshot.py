"""Incoming snapshot and archived history entry models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import ConfigDict, model_validator

from statshub.ingestion.normalize import safe_float, safe_int, string_list
from statshub.models._base import HubBaseModel

#: Counter keys (wire names) that overwrite on merge.
COUNTER_KEYS: tuple[str, ...] = (
    "activeSessions",
    "totalSessions",
    "stoppedSessions",
    "messagesProcessed",
    "errorsOccurred",
)


def _clean_snapshot_values(values: dict[str, Any]) -> dict[str, Any]:
    """Drop malformed optional values so the field default (``None``) is used."""
    cleaned = dict(values)
    for key in COUNTER_KEYS:
        if key in cleaned:
            parsed = safe_int(cleaned[key])
            if parsed is None:
                cleaned.pop(key)
            else:
                cleaned[key] = parsed
    if "avgDuration" in cleaned:
        duration = safe_float(cleaned["avgDuration"])
        if duration is None:
            cleaned.pop("avgDuration")
        else:
            cleaned["avgDuration"] = duration
    if "userAgents" in cleaned:
        cleaned["userAgents"] = string_list(cleaned["userAgents"])
    return cleaned


class Snapshot(HubBaseModel):
    """One producer-submitted telemetry payload.

    ``active_sessions`` is the only required field. Every other field is
    optional; unknown keys are kept (see :attr:`extras`) so they survive
    into the history entry.
    """

    model_config = ConfigDict(extra="allow")

    active_sessions: int
    total_sessions: int | None = None
    stopped_sessions: int | None = None
    messages_processed: int | None = None
    errors_occurred: int | None = None
    avg_duration: float | None = None
    user_agents: tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _clean(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return _clean_snapshot_values(values)

    @property
    def extras(self) -> dict[str, Any]:
        """Fields the producer sent that have no dedicated attribute."""
        return dict(self.model_extra or {})


class HistoryEntry(HubBaseModel):
    """Immutable archived copy of one snapshot plus its ingest metadata.

    ``timestamp`` and ``bot_version`` are optional only so entries from
    checkpoint files written by older versions still load.
    """

    model_config = ConfigDict(extra="allow")

    active_sessions: int | None = None
    total_sessions: int | None = None
    stopped_sessions: int | None = None
    messages_processed: int | None = None
    errors_occurred: int | None = None
    avg_duration: float | None = None
    user_agents: tuple[str, ...] = ()
    timestamp: datetime | None = None
    bot_version: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _clean(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return _clean_snapshot_values(values)

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot, *, timestamp: datetime, bot_version: str) -> HistoryEntry:
        fields = snapshot.model_dump(by_alias=True, exclude_none=True)
        fields["timestamp"] = timestamp
        fields["botVersion"] = bot_version
        return cls.model_validate(fields)
