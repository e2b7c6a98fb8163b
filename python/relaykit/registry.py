"""
Connection registry for RelayKit.

Tracks the identity of every live connection: its assigned id, the
display name it announced on join and the room it most recently joined.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass
class Connection:
    """
    A single live transport session.

    Attributes:
        id: Identifier assigned by the transport layer at connect time.
        name: Display name announced on join (None until set).
        room_id: Room most recently joined (None until a join arrives).
    """

    id: str
    name: Optional[str] = None
    room_id: Optional[str] = None

    @property
    def display_name(self) -> str:
        """The stored name, or the identifier when no name is set."""
        return self.name or self.id


class ConnectionRegistry:
    """In-memory mapping of connection id to Connection."""

    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    @property
    def ids(self) -> List[str]:
        """Get list of registered connection IDs."""
        return list(self._connections.keys())

    def register(self, connection_id: str) -> Connection:
        """
        Create an entry with no name and no room.

        Args:
            connection_id: The identifier assigned by the transport.

        Returns:
            The new connection entry.
        """
        connection = Connection(id=connection_id)
        self._connections[connection_id] = connection
        return connection

    def get(self, connection_id: str) -> Optional[Connection]:
        """Get a connection by ID."""
        return self._connections.get(connection_id)

    def set_name(self, connection_id: str, name: Optional[str]) -> None:
        """
        Store a display name.

        Empty or missing names are stored as None so the identifier is
        used at lookup time.
        """
        connection = self._connections.get(connection_id)
        if connection is None:
            return
        connection.name = name or None

    def resolve_name(self, connection_id: str) -> str:
        """Get the display name, falling back to the identifier."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return connection_id
        return connection.display_name

    def set_room(self, connection_id: str, room_id: str) -> None:
        """Record the room a connection most recently joined."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return
        connection.room_id = room_id

    def get_room(self, connection_id: str) -> Optional[str]:
        """Get the current room of a connection, if any."""
        connection = self._connections.get(connection_id)
        return connection.room_id if connection else None

    def remove(self, connection_id: str) -> Optional[Connection]:
        """
        Delete a connection's name and room association.

        Safe to call for unknown connections.

        Returns:
            The removed connection, or None if it was not registered.
        """
        return self._connections.pop(connection_id, None)


__all__ = ["Connection", "ConnectionRegistry"]
