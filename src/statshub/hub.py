"""Composition root for the aggregation service."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

from statshub.broadcast import BroadcastHub, Subscriber
from statshub.config import HubConfig
from statshub.gateway import Credentials, IngestGateway, IngestResult, token_predicate
from statshub.models._base import utcnow
from statshub.models.state import AggregatedState, StatsView
from statshub.persistence import PersistenceManager
from statshub.state.store import StateStore

_logger = logging.getLogger(__name__)


class StatsHub:
    """Aggregation service: state store, fan-out and checkpoints.

    Usage::

        async with StatsHub(HubConfig.from_env()) as hub:
            await hub.submit(credentials, payload)
            view = hub.stats()
    """

    def __init__(
        self,
        config: HubConfig,
        *,
        is_authorized: Callable[[Credentials], bool] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._config = config
        self._clock = clock
        self._started_at = time.monotonic()
        self.store = StateStore(clock=clock, history_limit=config.history_limit)
        self.broadcast = BroadcastHub(send_timeout=config.send_timeout)
        self.persistence = PersistenceManager(
            config.data_file,
            interval=config.checkpoint_interval,
            history_limit=config.persisted_history_limit,
            clock=clock,
        )
        self.gateway = IngestGateway(
            store=self.store,
            hub=self.broadcast,
            is_authorized=is_authorized or token_predicate(config.token),
            bot_identifier=config.bot_identifier,
            log_payloads=config.log_payloads,
        )

    @property
    def config(self) -> HubConfig:
        return self._config

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> StatsHub:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.shutdown()

    async def start(self) -> None:
        """Seed the store from the checkpoint and start the checkpoint timer."""
        persisted = self.persistence.load()
        if persisted is not None:
            self.store.load_from(persisted)
        self._started_at = time.monotonic()
        self.persistence.start(self.store.current)
        _logger.info(
            "Stats hub started (checkpoint every %.0fs to %s)",
            self._config.checkpoint_interval,
            self.persistence.path,
        )

    async def shutdown(self) -> None:
        """Stop the timer, write the final checkpoint, drop subscribers."""
        try:
            saved = await self.persistence.stop(self.store.current)
        finally:
            await self.broadcast.close()
        _logger.info("Analytics server shutting down (final checkpoint %s)", "saved" if saved else "failed")

    # ------------------------------------------------------------------
    # Boundaries
    # ------------------------------------------------------------------

    async def submit(self, credentials: Credentials, payload: Any) -> IngestResult:
        return await self.gateway.submit(credentials, payload)

    def current(self) -> AggregatedState:
        return self.store.current()

    @property
    def uptime(self) -> float:
        return time.monotonic() - self._started_at

    def stats(self) -> StatsView:
        """Current state plus process uptime and server time."""
        state = self.store.current()
        return StatsView(
            **dict(state),
            uptime=self.uptime,
            server_time=self._clock(),
        )

    async def subscribe(self, handle: Subscriber) -> int:
        return await self.broadcast.subscribe(handle, self.store.current())

    async def unsubscribe(self, handle: Subscriber) -> bool:
        return await self.broadcast.unsubscribe(handle)
