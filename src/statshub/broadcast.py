"""Fan-out of state updates to live subscribers."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from statshub.exceptions import HubSendError
from statshub.models.state import AggregatedState

_logger = logging.getLogger(__name__)

MESSAGE_INITIAL = "initial"
MESSAGE_UPDATE = "update"


class Subscriber(Protocol):
    """A duplex channel the hub can push text frames to."""

    @property
    def is_open(self) -> bool: ...

    async def send(self, message: str) -> None: ...


@dataclass(slots=True)
class _Member:
    """A registered subscriber.

    ``send_lock`` orders frames to one channel: the initial message is
    queued on it before the member becomes visible to :meth:`BroadcastHub.publish`.
    """

    subscriber_id: int
    handle: Subscriber
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def build_message(state: AggregatedState, *, message_type: str, connected_clients: int) -> str:
    payload: dict[str, Any] = state.to_wire()
    payload["type"] = message_type
    payload["connectedClients"] = connected_clients
    return json.dumps(payload)


class BroadcastHub:
    """Registry of live subscribers plus the publish fan-out.

    Membership changes and the membership copy taken by :meth:`publish`
    run under one :class:`asyncio.Lock`. Sends run outside it, each bounded
    by ``send_timeout``, so a slow subscriber only delays itself.
    """

    def __init__(self, *, send_timeout: float = 5.0) -> None:
        self._send_timeout = send_timeout
        self._members: dict[int, _Member] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._members)

    def _find(self, handle: Subscriber) -> _Member | None:
        for member in self._members.values():
            if member.handle is handle:
                return member
        return None

    async def subscribe(self, handle: Subscriber, state: AggregatedState) -> int:
        """Register *handle* and send it the ``initial`` message.

        Returns the subscriber id. When the initial send fails the handle is
        dropped again and :class:`HubSendError` is raised to the caller,
        which owns the connection.
        """
        async with self._lock:
            member = self._find(handle)
            if member is None:
                member = _Member(next(self._ids), handle)
                self._members[member.subscriber_id] = member
            count = len(self._members)
            await member.send_lock.acquire()

        message = build_message(state, message_type=MESSAGE_INITIAL, connected_clients=count)
        try:
            await self._deliver(member.subscriber_id, handle, message)
        except HubSendError:
            await self._evict([member])
            raise
        finally:
            member.send_lock.release()

        _logger.info("Subscriber %d connected (%d live)", member.subscriber_id, count)
        return member.subscriber_id

    async def unsubscribe(self, handle: Subscriber) -> bool:
        """Deregister *handle*. Returns ``False`` if it was not registered."""
        async with self._lock:
            member = self._find(handle)
            if member is None:
                return False
            del self._members[member.subscriber_id]
            remaining = len(self._members)
        _logger.info("Subscriber %d disconnected (%d live)", member.subscriber_id, remaining)
        return True

    async def publish(self, state: AggregatedState) -> int:
        """Send *state* to every registered subscriber.

        Returns the number of successful deliveries. Subscribers whose send
        fails, times out or whose channel is closed are evicted; the rest
        still receive the message.
        """
        async with self._lock:
            members = list(self._members.values())
            count = len(members)

        if not members:
            return 0

        message = build_message(state, message_type=MESSAGE_UPDATE, connected_clients=count)
        results = await asyncio.gather(
            *(self._deliver_ordered(member, message) for member in members),
            return_exceptions=True,
        )

        failed: list[_Member] = []
        for member, result in zip(members, results, strict=True):
            if isinstance(result, HubSendError):
                _logger.debug("Delivery to subscriber %d failed: %s", member.subscriber_id, result)
                failed.append(member)
            elif isinstance(result, BaseException):
                raise result

        if failed:
            await self._evict(failed)
        return count - len(failed)

    async def close(self) -> None:
        """Forget every subscriber. Used at shutdown."""
        async with self._lock:
            dropped = len(self._members)
            self._members.clear()
        if dropped:
            _logger.info("Dropped %d subscriber(s) at shutdown", dropped)

    async def _deliver_ordered(self, member: _Member, message: str) -> None:
        async with member.send_lock:
            await self._deliver(member.subscriber_id, member.handle, message)

    async def _deliver(self, subscriber_id: int, handle: Subscriber, message: str) -> None:
        if not handle.is_open:
            raise HubSendError("subscriber channel is closed", subscriber_id=subscriber_id)
        try:
            await asyncio.wait_for(handle.send(message), timeout=self._send_timeout)
        except TimeoutError as exc:
            raise HubSendError(
                f"send timed out after {self._send_timeout}s",
                subscriber_id=subscriber_id,
            ) from exc
        except Exception as exc:
            raise HubSendError(f"send failed: {exc}", subscriber_id=subscriber_id) from exc

    async def _evict(self, failed: list[_Member]) -> None:
        async with self._lock:
            for member in failed:
                # A reconnect may have re-registered the id; only drop our member.
                if self._members.get(member.subscriber_id) is member:
                    del self._members[member.subscriber_id]
            remaining = len(self._members)
        _logger.warning(
            "Evicted %d subscriber(s) after failed delivery: %s (%d live)",
            len(failed),
            [member.subscriber_id for member in failed],
            remaining,
        )
