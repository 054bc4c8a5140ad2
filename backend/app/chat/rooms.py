import asyncio
import itertools
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Set
from uuid import UUID

from fastapi import WebSocket

logger = logging.getLogger(__name__)

_connection_counter = itertools.count(1)


class Connection:
    """A live WebSocket tagged with the authenticated user"""

    def __init__(self, websocket: WebSocket, user_id: UUID):
        self.websocket = websocket
        self.user_id = user_id
        self.connection_id = f"ws_{next(_connection_counter)}_{datetime.utcnow().timestamp()}"
        # Keeps concurrent broadcasts from interleaving frames on one socket
        self._send_lock = asyncio.Lock()

    async def send_event(self, event_type: str, data: Dict[str, Any]):
        async with self._send_lock:
            await self.websocket.send_json({"type": event_type, "data": data})

    def __repr__(self) -> str:
        return f"<Connection {self.connection_id} user={self.user_id}>"


class RoomRegistry:
    """
    In-memory room membership: course id -> live connections.

    Also indexes live connections by user so notifications can reach a
    user who is not viewing the course. Only the chat gateway mutates
    the registry; everyone else reads snapshots.
    """

    def __init__(self):
        self._rooms: Dict[int, Set[Connection]] = {}
        self._membership: Dict[Connection, int] = {}
        self._users: Dict[UUID, Set[Connection]] = {}

    def register(self, connection: Connection):
        self._users.setdefault(connection.user_id, set()).add(connection)

    def unregister(self, connection: Connection):
        self.remove(connection)
        user_connections = self._users.get(connection.user_id)
        if user_connections is not None:
            user_connections.discard(connection)
            if not user_connections:
                del self._users[connection.user_id]

    def add(self, course_id: int, connection: Connection) -> Optional[int]:
        """
        Put a connection in a room, leaving its previous room.

        Returns:
            The course id of the room it left, if any
        """
        previous = self.remove(connection)
        self._rooms.setdefault(course_id, set()).add(connection)
        self._membership[connection] = course_id
        return previous

    def remove(self, connection: Connection) -> Optional[int]:
        course_id = self._membership.pop(connection, None)
        if course_id is None:
            return None
        members = self._rooms.get(course_id)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[course_id]
        return course_id

    def room_of(self, connection: Connection) -> Optional[int]:
        return self._membership.get(connection)

    def members_of(self, course_id: int) -> Set[Connection]:
        return set(self._rooms.get(course_id, ()))

    def connections_of(self, user_id: UUID) -> Set[Connection]:
        return set(self._users.get(user_id, ()))

    def stats(self) -> dict:
        return {
            "rooms": len(self._rooms),
            "users": len(self._users),
            "connections": sum(len(conns) for conns in self._users.values()),
        }


async def broadcast(connections: Iterable[Connection], event_type: str, data: Dict[str, Any]) -> int:
    """
    Send one event to many connections.

    Failures on individual connections are logged and skipped; the
    transport disconnect handler cleans them up.

    Returns:
        int: Number of connections the event was delivered to
    """
    targets = list(connections)
    results = await asyncio.gather(
        *(conn.send_event(event_type, data) for conn in targets),
        return_exceptions=True,
    )
    delivered = 0
    for conn, result in zip(targets, results):
        if isinstance(result, BaseException):
            logger.warning(f"Failed to deliver {event_type} to {conn}: {result}")
        else:
            delivered += 1
    return delivered


# Process-wide registry, owned by the chat gateway
registry = RoomRegistry()
