import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from relaychat.services.locks import KeyedLock

logger = logging.getLogger(__name__)


@dataclass
class PresenceTracker:
    """Username -> live connections. A user is online while it has at least one."""

    on_offline: Callable[[str], Awaitable[None]] | None = None
    _connections: dict[str, set] = field(default_factory=dict)
    _owners: dict = field(default_factory=dict)
    _locks: KeyedLock = field(default_factory=KeyedLock)

    async def identify(self, connection, username: str) -> bool:
        """Register ``connection`` for ``username``. True if the user just came online."""
        previous = self._owners.get(connection)
        if previous == username:
            return False
        if previous is not None:
            await self.remove(connection)

        async with self._locks.hold(username):
            handles = self._connections.setdefault(username, set())
            came_online = not handles
            handles.add(connection)
            self._owners[connection] = username
        logger.info("%s identified as %s (%d connection(s))", connection, username, len(handles))
        return came_online

    async def remove(self, connection) -> str | None:
        """Drop ``connection``. Returns the username if it just went offline."""
        username = self._owners.get(connection)
        if username is None:
            return None

        async with self._locks.hold(username):
            if self._owners.get(connection) != username:
                return None
            del self._owners[connection]
            handles = self._connections.get(username, set())
            handles.discard(connection)
            if handles:
                return None
            self._connections.pop(username, None)

        logger.info("%s went offline", username)
        if self.on_offline is not None:
            try:
                await self.on_offline(username)
            except Exception:
                logger.exception("Could not record last seen for %s", username)
        return username

    def online_usernames(self) -> set[str]:
        return set(self._connections)

    def connections_for(self, username: str) -> set:
        return set(self._connections.get(username, ()))

    def username_for(self, connection) -> str | None:
        return self._owners.get(connection)

    def all_connections(self) -> set:
        return set(self._owners)
