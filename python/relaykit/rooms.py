"""
Room table for RelayKit.

Maps room identifiers to the set of member connection IDs. A room is
created by the first join and pruned as soon as its last member leaves,
so an entry in the table always has at least one member.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List

logger = logging.getLogger(__name__)


class RoomTable:
    """
    In-memory room membership.

    Methods here never await; callers that share a table between
    concurrent handlers serialize access around them.
    """

    def __init__(self) -> None:
        # room_id -> member ids in join order
        self._rooms: Dict[str, Dict[str, None]] = {}

    @property
    def room_count(self) -> int:
        """Get the number of active rooms."""
        return len(self._rooms)

    @property
    def room_ids(self) -> List[str]:
        """Get list of active room IDs."""
        return list(self._rooms.keys())

    def has_room(self, room_id: str) -> bool:
        """Check if a room exists."""
        return room_id in self._rooms

    def members(self, room_id: str) -> FrozenSet[str]:
        """
        Get the members of a room.

        Returns an empty set for unknown rooms.
        """
        return frozenset(self._rooms.get(room_id, ()))

    def rooms_of(self, connection_id: str) -> List[str]:
        """Get every room a connection is currently a member of."""
        return [
            room_id
            for room_id, members in self._rooms.items()
            if connection_id in members
        ]

    def join(self, room_id: str, connection_id: str) -> List[str]:
        """
        Add a connection to a room, creating the room if needed.

        Args:
            room_id: The room to join.
            connection_id: The joining connection.

        Returns:
            The members present before the connection was added. Never
            contains the joining connection itself.
        """
        members = self._get_or_create(room_id)
        peers = [member for member in members if member != connection_id]
        members[connection_id] = None
        return peers

    def leave(self, room_id: str, connection_id: str) -> bool:
        """
        Remove a connection from a room.

        Unknown rooms and non-members are ignored.

        Returns:
            True if the connection was a member and has been removed.
        """
        members = self._rooms.get(room_id)
        if members is None or connection_id not in members:
            return False

        del members[connection_id]
        self._delete_if_empty(room_id)
        return True

    def _get_or_create(self, room_id: str) -> Dict[str, None]:
        members = self._rooms.get(room_id)
        if members is None:
            members = self._rooms[room_id] = {}
            logger.debug(f"Room created: {room_id}")
        return members

    def _delete_if_empty(self, room_id: str) -> bool:
        if self._rooms.get(room_id):
            return False
        self._rooms.pop(room_id, None)
        logger.debug(f"Room deleted: {room_id}")
        return True


__all__ = ["RoomTable"]
