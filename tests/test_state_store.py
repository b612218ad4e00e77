from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from statshub.models import AggregatedState, Snapshot
from statshub.state.store import StateStore


def _dt() -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC)


def _snap(**fields: object) -> Snapshot:
    return Snapshot.model_validate(fields)


def test_starts_from_zero_value_state() -> None:
    store = StateStore(clock=_dt)
    state = store.current()

    assert state.active_sessions == 0
    assert state.avg_duration == 0.0
    assert state.user_agents == ()
    assert state.history == ()
    assert state.last_updated == _dt()


@pytest.mark.asyncio
async def test_apply_merge_is_visible_to_next_read() -> None:
    store = StateStore(clock=_dt)

    returned = await store.apply_merge(_snap(activeSessions=3, userAgents=["UA1"]))

    assert store.current() is returned
    assert store.current().active_sessions == 3
    assert store.merge_count == 1


@pytest.mark.asyncio
async def test_reader_snapshot_is_not_affected_by_later_merges() -> None:
    store = StateStore(clock=_dt)
    await store.apply_merge(_snap(activeSessions=1))
    before = store.current()

    await store.apply_merge(_snap(activeSessions=2))

    assert before.active_sessions == 1
    assert len(before.history) == 1
    assert store.current().active_sessions == 2


@pytest.mark.asyncio
async def test_concurrent_merges_are_never_lost() -> None:
    store = StateStore(clock=_dt)

    await asyncio.gather(*(store.apply_merge(_snap(activeSessions=i, userAgents=[f"UA{i}"])) for i in range(50)))

    state = store.current()
    assert len(state.history) == 50
    assert len(state.user_agents) == 50
    assert store.merge_count == 50
    # Counters and history always come from the same merge.
    assert state.active_sessions == state.history[-1].active_sessions


@pytest.mark.asyncio
async def test_bot_version_is_recorded() -> None:
    store = StateStore(clock=_dt)
    state = await store.apply_merge(_snap(activeSessions=1), bot_version="1.4.2")

    assert state.bot_version == "1.4.2"
    assert state.history[-1].bot_version == "1.4.2"


def test_load_from_replaces_state_and_enforces_history_limit() -> None:
    store = StateStore(clock=_dt, history_limit=3)
    persisted = AggregatedState.model_validate(
        {
            "activeSessions": 7,
            "userAgents": ["UA1"],
            "history": [{"activeSessions": i} for i in range(5)],
        }
    )

    store.load_from(persisted)

    state = store.current()
    assert state.active_sessions == 7
    assert state.user_agents == ("UA1",)
    assert [entry.active_sessions for entry in state.history] == [2, 3, 4]
