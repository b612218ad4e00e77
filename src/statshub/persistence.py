"""Checkpointing of the aggregated state to disk.

Durability is best effort: a failed load starts from the zero-value state,
a failed checkpoint is logged and retried on the next tick.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import tempfile
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from statshub.exceptions import HubPersistenceError
from statshub.models._base import utcnow
from statshub.models.state import AggregatedState

_logger = logging.getLogger(__name__)

DEFAULT_CHECKPOINT_INTERVAL = 60.0
DEFAULT_PERSISTED_HISTORY_LIMIT = 50


def _write_atomic(path: Path, data: str) -> None:
    """Write *data* to *path* via a sibling temp file and ``os.replace``."""
    directory = path.parent
    directory.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


class PersistenceManager:
    """Loads, periodically checkpoints and finally checkpoints the state.

    Usage::

        manager = PersistenceManager("analytics-data.json")
        state = manager.load()
        manager.start(store.current)
        ...
        await manager.stop(store.current)
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        interval: float = DEFAULT_CHECKPOINT_INTERVAL,
        history_limit: int = DEFAULT_PERSISTED_HISTORY_LIMIT,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._path = Path(path)
        self._interval = interval
        self._history_limit = history_limit
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._write_lock = asyncio.Lock()
        self.last_checkpoint_at: datetime | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def read(self) -> AggregatedState | None:
        """Read the checkpoint file.

        Returns ``None`` when no file exists.

        Raises
        ------
        HubPersistenceError
            If the file exists but cannot be read or parsed.
        """
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise HubPersistenceError(f"cannot read checkpoint: {exc}", path=str(self._path)) from exc

        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            raise HubPersistenceError(f"checkpoint is not valid JSON: {exc}", path=str(self._path)) from exc
        if not isinstance(raw, dict):
            raise HubPersistenceError("checkpoint is not a JSON object", path=str(self._path))

        # Older files lack newer fields; the model defaults fill them in.
        raw["lastUpdated"] = self._clock()
        try:
            return AggregatedState.model_validate(raw)
        except ValidationError as exc:
            raise HubPersistenceError(f"checkpoint has an invalid shape: {exc}", path=str(self._path)) from exc

    def load(self) -> AggregatedState | None:
        """Return the persisted state, or ``None`` when there is none usable."""
        try:
            state = self.read()
        except HubPersistenceError:
            _logger.warning("Ignoring unreadable checkpoint %s", self._path, exc_info=True)
            return None
        if state is None:
            _logger.info("No checkpoint at %s, starting from empty state", self._path)
            return None
        _logger.info("Loaded analytics data from %s (%d history entries)", self._path, len(state.history))
        return state

    # ------------------------------------------------------------------
    # Checkpoint
    # ------------------------------------------------------------------

    def serialize(self, state: AggregatedState) -> str:
        return json.dumps(state.truncated(self._history_limit).to_wire())

    def write(self, state: AggregatedState) -> None:
        """Write a checkpoint synchronously.

        Raises
        ------
        HubPersistenceError
            If serialization or the write fails.
        """
        try:
            _write_atomic(self._path, self.serialize(state))
        except (OSError, TypeError, ValueError) as exc:
            raise HubPersistenceError(f"cannot write checkpoint: {exc}", path=str(self._path)) from exc

    async def checkpoint(self, state: AggregatedState) -> bool:
        """Write *state* without blocking the event loop.

        Returns ``True`` on success. Failures are logged, never raised.
        """
        loop = asyncio.get_running_loop()
        async with self._write_lock:
            future = loop.run_in_executor(None, self.write, state)
            try:
                await asyncio.shield(future)
            except asyncio.CancelledError:
                # The worker thread keeps running; hold the lock until its
                # os.replace is done so a later checkpoint always lands last.
                await asyncio.wait([future])
                if future.exception() is not None:
                    _logger.error("Error saving analytics data to %s", self._path, exc_info=future.exception())
                raise
            except HubPersistenceError:
                _logger.error("Error saving analytics data to %s", self._path, exc_info=True)
                return False
        self.last_checkpoint_at = self._clock()
        _logger.debug("Checkpoint written to %s", self._path)
        return True

    # ------------------------------------------------------------------
    # Periodic task lifecycle
    # ------------------------------------------------------------------

    def start(self, get_state: Callable[[], AggregatedState]) -> None:
        """Start checkpointing ``get_state()`` every ``interval`` seconds."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(get_state), name="statshub-checkpoint")

    async def stop(self, get_state: Callable[[], AggregatedState]) -> bool:
        """Cancel the periodic task, then write the final checkpoint."""
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        return await self.checkpoint(get_state())

    async def _run(self, get_state: Callable[[], AggregatedState]) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.checkpoint(get_state())
            except Exception:
                _logger.exception("Checkpoint tick failed")
