from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from statshub.broadcast import BroadcastHub
from statshub.exceptions import (
    HubAuthorizationError,
    HubForbiddenError,
    HubInternalError,
    HubValidationError,
)
from statshub.gateway import Credentials, IngestGateway, token_predicate
from statshub.state.store import StateStore

TOKEN = "test-token-123"


def _dt() -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC)


class _RecordingSubscriber:
    def __init__(self) -> None:
        self.messages: list[dict[str, object]] = []

    @property
    def is_open(self) -> bool:
        return True

    async def send(self, message: str) -> None:
        self.messages.append(json.loads(message))


def _gateway() -> tuple[IngestGateway, StateStore, BroadcastHub]:
    store = StateStore(clock=_dt)
    hub = BroadcastHub()
    gateway = IngestGateway(
        store=store,
        hub=hub,
        is_authorized=token_predicate(TOKEN),
        bot_identifier="CHUCKY-X",
    )
    return gateway, store, hub


def _creds(**overrides: str | None) -> Credentials:
    values: dict[str, str | None] = {"token": TOKEN, "bot_identifier": "CHUCKY-X", "bot_version": "1.0"}
    values.update(overrides)
    return Credentials(**values)


def test_credentials_from_headers_is_case_insensitive() -> None:
    creds = Credentials.from_headers(
        {"authorization": f"Bearer  {TOKEN} ", "X-BOT-IDENTIFIER": "CHUCKY-X", "x-bot-version": "3.1"}
    )
    assert creds.token == TOKEN
    assert creds.bot_identifier == "CHUCKY-X"
    assert creds.bot_version == "3.1"
    assert TOKEN not in repr(creds)


@pytest.mark.asyncio
async def test_concrete_two_submission_scenario() -> None:
    gateway, store, _ = _gateway()

    await gateway.submit(_creds(), {"activeSessions": 3, "userAgents": ["UA1"]})
    state = store.current()
    assert state.active_sessions == 3
    assert state.user_agents == ("UA1",)
    assert len(state.history) == 1

    await gateway.submit(_creds(), {"activeSessions": 5, "userAgents": ["UA2"]})
    state = store.current()
    assert state.active_sessions == 5
    assert state.user_agents == ("UA1", "UA2")
    assert len(state.history) == 2


@pytest.mark.asyncio
async def test_missing_active_sessions_is_rejected_without_side_effects() -> None:
    gateway, store, hub = _gateway()
    subscriber = _RecordingSubscriber()
    await hub.subscribe(subscriber, store.current())
    before = store.current()

    with pytest.raises(HubValidationError) as excinfo:
        await gateway.submit(_creds(), {"totalSessions": 4})

    assert excinfo.value.status_code == 400
    assert excinfo.value.extra["expected"] == "activeSessions"
    assert excinfo.value.extra["received"] == ["totalSessions"]
    assert store.current() is before
    assert len(subscriber.messages) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [None, [], "activeSessions", {"activeSessions": None}, {"activeSessions": "x"}])
async def test_malformed_payloads_are_validation_errors(payload: object) -> None:
    gateway, store, _ = _gateway()

    with pytest.raises(HubValidationError):
        await gateway.submit(_creds(), payload)

    assert store.merge_count == 0


@pytest.mark.asyncio
async def test_missing_headers_are_unauthorized() -> None:
    gateway, _, _ = _gateway()

    with pytest.raises(HubAuthorizationError) as excinfo:
        await gateway.submit(_creds(bot_identifier=None), {"activeSessions": 1})

    assert excinfo.value.status_code == 401
    assert excinfo.value.details == "Missing required headers"


@pytest.mark.asyncio
async def test_wrong_token_is_unauthorized_and_not_logged(caplog: pytest.LogCaptureFixture) -> None:
    gateway, store, _ = _gateway()

    with pytest.raises(HubAuthorizationError) as excinfo:
        await gateway.submit(_creds(token="wrong-secret"), {"activeSessions": 1})

    assert excinfo.value.details == "Invalid token"
    assert not isinstance(excinfo.value, HubForbiddenError)
    assert "wrong-secret" not in caplog.text
    assert "wrong-secret" not in json.dumps(excinfo.value.to_dict())
    assert store.merge_count == 0


@pytest.mark.asyncio
async def test_wrong_bot_identifier_is_forbidden() -> None:
    gateway, _, _ = _gateway()

    with pytest.raises(HubForbiddenError) as excinfo:
        await gateway.submit(_creds(bot_identifier="OTHER"), {"activeSessions": 1})

    assert excinfo.value.status_code == 403
    assert excinfo.value.to_dict() == {
        "error": "Forbidden",
        "details": "Invalid bot identifier",
        "expected": "CHUCKY-X",
        "received": "OTHER",
    }


@pytest.mark.asyncio
async def test_accepted_submission_is_broadcast() -> None:
    gateway, store, hub = _gateway()
    subscriber = _RecordingSubscriber()
    await hub.subscribe(subscriber, store.current())

    result = await gateway.submit(_creds(bot_version=None), {"activeSessions": 2})

    assert result.delivered == 1
    assert result.entry.bot_version == "unknown"
    assert subscriber.messages[-1]["type"] == "update"
    assert subscriber.messages[-1]["activeSessions"] == 2


@pytest.mark.asyncio
async def test_unexpected_failure_becomes_internal_error() -> None:
    gateway, store, hub = _gateway()

    async def _broken_publish(state: object) -> int:
        raise RuntimeError("fan-out exploded")

    hub.publish = _broken_publish  # type: ignore[method-assign]

    with pytest.raises(HubInternalError) as excinfo:
        await gateway.submit(_creds(), {"activeSessions": 1})

    assert excinfo.value.status_code == 500
    assert "fan-out exploded" in excinfo.value.details
