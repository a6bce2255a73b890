"""In-memory registry of realtime connections and their channel subscriptions."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncContextManager, Awaitable, Callable, Dict

from ..core.locks import KeyedLocks
from ..schemas.users import UserSummary

logger = logging.getLogger(__name__)

SendCallable = Callable[[dict], Awaitable[None]]


@dataclass(slots=True)
class Connection:
    """An authenticated realtime participant."""

    connection_id: str
    user: UserSummary
    send: SendCallable

    async def emit(self, event: str, data: Any = None) -> None:
        await self.send({"event": event, "data": data})


@dataclass(slots=True)
class _Entry:
    connection: Connection
    channels: set[str] = field(default_factory=set)


class ConnectionRegistry:
    """Track connections by id and fan messages out per channel.

    One registry is owned by each gateway, so chat and signaling subscriptions
    never overlap.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, _Entry] = {}
        self._channels: Dict[str, Dict[str, Connection]] = {}
        self._channel_locks = KeyedLocks()
        self._lock = asyncio.Lock()

    async def register(self, connection: Connection) -> None:
        async with self._lock:
            self._entries[connection.connection_id] = _Entry(connection)

    async def unregister(self, connection_id: str) -> set[str]:
        """Forget a connection and return the channels it was subscribed to."""

        async with self._lock:
            entry = self._entries.pop(connection_id, None)
            if entry is None:
                return set()
            for channel in entry.channels:
                self._discard(channel, connection_id)
            return set(entry.channels)

    async def subscribe(self, connection_id: str, channel: str) -> list[Connection]:
        """Subscribe a registered connection and return the other occupants."""

        async with self._lock:
            entry = self._entries.get(connection_id)
            if entry is None:
                return []
            members = self._channels.setdefault(channel, {})
            others = [conn for conn_id, conn in members.items() if conn_id != connection_id]
            members[connection_id] = entry.connection
            entry.channels.add(channel)
            return others

    async def unsubscribe(self, connection_id: str, channel: str) -> bool:
        """Remove a subscription. Returns False when there was nothing to remove."""

        async with self._lock:
            entry = self._entries.get(connection_id)
            if entry is None or channel not in entry.channels:
                return False
            entry.channels.discard(channel)
            self._discard(channel, connection_id)
            return True

    async def is_subscribed(self, connection_id: str, channel: str) -> bool:
        async with self._lock:
            entry = self._entries.get(connection_id)
            return entry is not None and channel in entry.channels

    async def channels_for(self, connection_id: str) -> set[str]:
        async with self._lock:
            entry = self._entries.get(connection_id)
            return set(entry.channels) if entry else set()

    async def subscribers(self, channel: str) -> list[Connection]:
        async with self._lock:
            return list(self._channels.get(channel, {}).values())

    def channel_lock(self, channel: str) -> AsyncContextManager[None]:
        """Hold the lock that orders persist-then-broadcast sequences on one channel."""

        return self._channel_locks.hold(channel)

    async def broadcast(self, channel: str, event: str, data: Any, *, exclude: str | None = None) -> None:
        """Send an event to every subscriber of a channel except ``exclude``."""

        participants = await self.subscribers(channel)
        targets = [conn for conn in participants if conn.connection_id != exclude]
        if not targets:
            return

        results = await asyncio.gather(*(conn.emit(event, data) for conn in targets), return_exceptions=True)
        for conn, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.debug("Dropped %s to %s: %r", event, conn.connection_id, result)

    def _discard(self, channel: str, connection_id: str) -> None:
        members = self._channels.get(channel)
        if not members:
            return
        members.pop(connection_id, None)
        if not members:
            self._channels.pop(channel, None)
