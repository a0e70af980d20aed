"""Connection registry — one live connection per user, best-effort notify.

Learn: The table is a plain dict behind a threading.Lock. The lock only
ever covers dict operations; every send and close happens after it is
released, so a slow socket cannot stall registrations or other users'
notifications.

Delivery is fire-and-forget. If the recipient is not connected, notify()
returns False and nothing happens. If the send fails, the caller gets a
NotificationError and decides whether to log it; nothing is retried or
queued.

Two policies are configurable:
- close_superseded: when a user connects again, close the old socket
  instead of just forgetting it.
- unregister_on_send_failure: treat a failed send like a disconnect.
  Off by default, in which case only the connection's read loop
  unregisters it.
"""

import threading
from typing import Optional

import structlog

from tenderhub.events.models import DomainEvent, serialize_event
from tenderhub.realtime.connection import Connection

logger = structlog.get_logger()


class NotificationError(Exception):
    """Raised when an event for a connected user could not be pushed."""

    def __init__(self, identity: str, message: str):
        super().__init__(message)
        self.identity = identity


class NotificationSerializationError(NotificationError):
    """The event could not be encoded."""


class NotificationDeliveryError(NotificationError):
    """The transport write failed."""


class ConnectionRegistry:
    """Process-wide map of user identity → live Connection."""

    def __init__(
        self,
        close_superseded: bool = False,
        unregister_on_send_failure: bool = False,
    ):
        self.close_superseded = close_superseded
        self.unregister_on_send_failure = unregister_on_send_failure
        self._connections: dict[str, Connection] = {}
        self._lock = threading.Lock()

    # ─── Registration ─────────────────────────────────────

    async def register(
        self, identity: str, connection: Connection
    ) -> Optional[Connection]:
        """Make ``connection`` the live connection for ``identity``.

        Returns the connection it replaced, if any.
        """
        with self._lock:
            previous = self._connections.get(identity)
            self._connections[identity] = connection

        logger.info("registry.registered", user_id=identity)

        if previous is not None and previous is not connection:
            logger.info(
                "registry.superseded",
                user_id=identity,
                closing=self.close_superseded,
            )
            if self.close_superseded:
                await _close_quietly(identity, previous)
        return previous

    def unregister(
        self, identity: str, connection: Optional[Connection] = None
    ) -> Optional[Connection]:
        """Remove the entry for ``identity``; no-op if there is none.

        When ``connection`` is given the entry is only removed if it is
        still that exact connection. A read loop for a superseded socket
        therefore cannot evict the newer registration.
        """
        with self._lock:
            current = self._connections.get(identity)
            if current is None:
                return None
            if connection is not None and current is not connection:
                return None
            del self._connections[identity]

        logger.info("registry.unregistered", user_id=identity)
        return current

    def get(self, identity: str) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(identity)

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._connections

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    # ─── Delivery ─────────────────────────────────────────

    async def notify(self, identity: str, event: DomainEvent) -> bool:
        """Push ``event`` to the live connection of ``identity``.

        Returns False (no side effect) when the user is not connected,
        True once the message was written.
        """
        connection = self.get(identity)
        if connection is None:
            logger.debug("notify.no_recipient", user_id=identity, event_type=event.type)
            return False

        try:
            message = serialize_event(event)
        except (TypeError, ValueError) as e:
            raise NotificationSerializationError(
                identity, f"Could not encode {event.type} event: {e}"
            ) from e

        try:
            await connection.send_message(message)
        except Exception as e:
            if self.unregister_on_send_failure:
                if self.unregister(identity, connection) is not None:
                    await _close_quietly(identity, connection)
            raise NotificationDeliveryError(
                identity, f"Could not deliver {event.type} event: {e}"
            ) from e

        logger.debug("notify.sent", user_id=identity, event_type=event.type)
        return True

    async def publish(self, event: DomainEvent) -> bool:
        """notify() the event's own recipient."""
        return await self.notify(event.recipient_id, event)

    # ─── Shutdown ─────────────────────────────────────────

    async def close_all(self) -> int:
        """Drop every entry, then close the connections. Returns how many."""
        with self._lock:
            connections = list(self._connections.items())
            self._connections.clear()

        for identity, connection in connections:
            await _close_quietly(identity, connection)
        if connections:
            logger.info("registry.closed_all", count=len(connections))
        return len(connections)


async def _close_quietly(identity: str, connection: Connection) -> None:
    try:
        await connection.close()
    except Exception as e:
        logger.warning("registry.close_failed", user_id=identity, error=str(e))
