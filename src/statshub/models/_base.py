"""Base model shared by every statshub record.

Every wire/persisted record inherits from :class:`HubBaseModel` which
provides:

* ``alias_generator=to_camel`` so the camelCase keys the producer and the
  dashboard use map to snake_case fields.
* ``frozen=True`` so a record handed to a reader can never change under it.
* :meth:`HubBaseModel.to_wire` for the canonical JSON-ready dict.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(UTC)


class HubBaseModel(BaseModel):
    """Frozen camelCase model."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_wire(self, *, exclude_none: bool = False) -> dict[str, Any]:
        """Dump to a JSON-ready dict using the camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=exclude_none)
