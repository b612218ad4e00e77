"""Ingest boundary: producer identity, payload shape, merge and fan-out."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from statshub._redact import redact_for_log
from statshub.broadcast import BroadcastHub
from statshub.exceptions import (
    HubAuthorizationError,
    HubForbiddenError,
    HubIngestError,
    HubInternalError,
    HubValidationError,
)
from statshub.models.snapshot import HistoryEntry, Snapshot
from statshub.models.state import AggregatedState
from statshub.state.store import StateStore

_logger = logging.getLogger(__name__)

REQUIRED_HEADERS: tuple[str, ...] = (
    "Authorization: Bearer <token>",
    "X-Bot-Identifier: <bot identifier>",
)


@dataclass(frozen=True)
class Credentials:
    """Caller identity as presented on an ingest request."""

    token: str | None = None
    bot_identifier: str | None = None
    bot_version: str | None = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> Credentials:
        """Extract credentials from (case-insensitive) HTTP headers."""
        lowered = {key.lower(): value for key, value in headers.items()}
        token: str | None = None
        auth = lowered.get("authorization")
        if auth:
            token = auth.removeprefix("Bearer ").strip() or None
        return cls(
            token=token,
            bot_identifier=lowered.get("x-bot-identifier") or None,
            bot_version=lowered.get("x-bot-version") or None,
        )

    def __repr__(self) -> str:
        # Never leak the token through reprs in tracebacks or logs.
        return (
            f"Credentials(token={'<redacted>' if self.token else None}, "
            f"bot_identifier={self.bot_identifier!r}, bot_version={self.bot_version!r})"
        )


def token_predicate(expected_token: str) -> Callable[[Credentials], bool]:
    """Default authorization predicate: constant-time token comparison."""
    expected = expected_token.encode("utf-8")

    def _is_authorized(credentials: Credentials) -> bool:
        if credentials.token is None:
            return False
        return secrets.compare_digest(credentials.token.encode("utf-8"), expected)

    return _is_authorized


@dataclass(frozen=True)
class IngestResult:
    """Outcome of an accepted submission."""

    state: AggregatedState
    entry: HistoryEntry
    delivered: int


def validate_payload(payload: Any) -> Snapshot:
    """Parse an untrusted payload into a :class:`Snapshot`.

    Raises
    ------
    HubValidationError
        If the payload is not an object or ``activeSessions`` is missing.
    """
    if not isinstance(payload, dict):
        raise HubValidationError(
            "Invalid analytics data format",
            expected="JSON object",
            received=type(payload).__name__,
        )
    if payload.get("activeSessions") is None:
        raise HubValidationError(
            "Invalid analytics data format",
            expected="activeSessions",
            received=sorted(str(key) for key in payload),
        )
    try:
        return Snapshot.model_validate(payload)
    except ValidationError as exc:
        raise HubValidationError(
            "Invalid analytics data format",
            expected="activeSessions as a number",
            received=repr(payload.get("activeSessions"))[:64],
        ) from exc


class IngestGateway:
    """Checks the caller, validates the snapshot and drives merge + publish."""

    def __init__(
        self,
        *,
        store: StateStore,
        hub: BroadcastHub,
        is_authorized: Callable[[Credentials], bool],
        bot_identifier: str,
        log_payloads: bool = False,
    ) -> None:
        self._store = store
        self._hub = hub
        self._is_authorized = is_authorized
        self._bot_identifier = bot_identifier
        self._log_payloads = log_payloads

    def authorize(self, credentials: Credentials) -> None:
        """Raise unless *credentials* identify the configured producer."""
        if not credentials.token or not credentials.bot_identifier:
            raise HubAuthorizationError(
                "Missing required headers",
                requiredHeaders=list(REQUIRED_HEADERS),
            )
        if not self._is_authorized(credentials):
            _logger.warning("Rejected update: invalid token (bot=%s)", credentials.bot_identifier)
            raise HubAuthorizationError(
                "Invalid token",
                hint="Verify the token matches exactly with no extra spaces",
            )
        if credentials.bot_identifier != self._bot_identifier:
            _logger.warning("Rejected update: unexpected bot identifier %r", credentials.bot_identifier)
            raise HubForbiddenError(
                "Invalid bot identifier",
                expected=self._bot_identifier,
                received=credentials.bot_identifier,
            )

    async def submit(self, credentials: Credentials, payload: Any) -> IngestResult:
        """Authorize, validate, merge and broadcast one snapshot.

        Raises
        ------
        HubAuthorizationError
            Missing or rejected credentials (``HubForbiddenError`` for a
            wrong bot identifier).
        HubValidationError
            Payload is not an object or lacks ``activeSessions``.
        HubInternalError
            Anything unexpected while merging or broadcasting.
        """
        self.authorize(credentials)
        snapshot = validate_payload(payload)
        if self._log_payloads:
            _logger.debug("Snapshot payload: %s", redact_for_log(payload))

        bot_version = credentials.bot_version or "unknown"
        try:
            state = await self._store.apply_merge(snapshot, bot_version=bot_version)
            delivered = await self._hub.publish(state)
        except HubIngestError:
            raise
        except Exception as exc:
            _logger.exception("Error processing analytics update")
            raise HubInternalError(str(exc) or type(exc).__name__) from exc

        entry = state.history[-1]
        _logger.info(
            "Received valid analytics update: active_sessions=%s bot_version=%s delivered=%d",
            snapshot.active_sessions,
            bot_version,
            delivered,
        )
        return IngestResult(state=state, entry=entry, delivered=delivered)
