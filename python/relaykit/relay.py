"""
Relay engine for RelayKit.

Handles the per-connection event stream (join, signal, chat, ping-time,
whiteboard, disconnect), keeps the connection registry and room table
consistent and hands outbound frames to the transport.

All registry and room mutations happen under one engine-wide asyncio
lock and never await while holding it. Recipient lists are captured
inside the lock; delivery happens after it is released.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional, Tuple

from pydantic import ValidationError

from .protocol import (
    Event,
    JoinMessage,
    SignalMessage,
    ChatMessage,
    PingTimeMessage,
    WhiteboardMessage,
    JoinedMessage,
    PeerJoinSignal,
    ChatBroadcast,
    PongTimeMessage,
    LeftMessage,
    parse_client_message,
)
from .registry import Connection, ConnectionRegistry
from .rooms import RoomTable
from .transport import DeliveryResult, Transport

logger = logging.getLogger(__name__)

# Returns milliseconds since the epoch
Clock = Callable[[], int]

Handler = Callable[[str, Any], Awaitable[List[DeliveryResult]]]


def epoch_millis() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


class RelayEngine:
    """
    Message relay for signaling, chat, presence and whiteboard traffic.

    Every malformed or misdirected message is dropped without telling the
    sender. Handlers return the DeliveryResults of the deliveries they
    attempted (an empty list when the message was dropped).
    """

    def __init__(
        self,
        transport: Transport,
        registry: Optional[ConnectionRegistry] = None,
        rooms: Optional[RoomTable] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the engine.

        Args:
            transport: Where outbound frames are delivered.
            registry: Connection registry (a fresh one by default).
            rooms: Room table (a fresh one by default).
            clock: Millisecond clock used for chat and pong timestamps.
        """
        self._transport = transport
        self._registry = registry or ConnectionRegistry()
        self._rooms = rooms or RoomTable()
        self._clock = clock or epoch_millis
        self._last_time = 0
        self._lock = asyncio.Lock()

        self._handlers: Dict[str, Handler] = {
            Event.JOIN.value: self._handle_join,
            Event.SIGNAL.value: self._handle_signal,
            Event.CHAT.value: self._handle_chat,
            Event.PING_TIME.value: self._handle_ping_time,
            Event.WHITEBOARD.value: self._handle_whiteboard,
        }

    @property
    def registry(self) -> ConnectionRegistry:
        """Get the connection registry."""
        return self._registry

    @property
    def rooms(self) -> RoomTable:
        """Get the room table."""
        return self._rooms

    def now(self) -> int:
        """Relay time in milliseconds, never going backwards."""
        current = self._clock()
        if current > self._last_time:
            self._last_time = current
        return self._last_time

    async def connect(self, connection_id: str) -> Connection:
        """Register a newly opened connection. Nothing is broadcast."""
        async with self._lock:
            connection = self._registry.register(connection_id)
        logger.info(f"Connection opened: {connection_id}")
        return connection

    async def handle(self, connection_id: str, event: str, data: Any) -> List[DeliveryResult]:
        """
        Handle one inbound event.

        Args:
            connection_id: The sending connection.
            event: The event name.
            data: The raw event payload.

        Returns:
            Delivery results of every frame sent as a consequence.
        """
        if connection_id not in self._registry:
            logger.debug(f"Dropping {event!r} from unregistered connection {connection_id}")
            return []

        handler = self._handlers.get(event)
        if handler is None:
            logger.debug(f"Dropping unknown event {event!r} from {connection_id}")
            return []

        try:
            message = parse_client_message(event, data)
        except (ValueError, ValidationError) as e:
            logger.debug(f"Dropping malformed {event!r} from {connection_id}: {e}")
            return []

        return await handler(connection_id, message)

    async def disconnect(self, connection_id: str) -> List[DeliveryResult]:
        """
        Remove a connection from every room and from the registry.

        Remaining members of each affected room receive ``left``; rooms
        left empty are deleted.
        """
        departures: List[Tuple[str, FrozenSet[str]]] = []

        async with self._lock:
            for room_id in self._rooms.rooms_of(connection_id):
                self._rooms.leave(room_id, connection_id)
                departures.append((room_id, self._rooms.members(room_id)))
            self._registry.remove(connection_id)

        results: List[DeliveryResult] = []
        notice = LeftMessage(peer_id=connection_id)
        for room_id, remaining in departures:
            logger.debug(f"Connection {connection_id} left room {room_id} ({len(remaining)} remaining)")
            fanout = await self._transport.send_many(remaining, Event.LEFT, notice)
            results.extend(fanout.values())

        logger.info(f"Connection closed: {connection_id}")
        return results

    async def _handle_join(self, connection_id: str, message: JoinMessage) -> List[DeliveryResult]:
        room_id = message.room_id

        async with self._lock:
            self._registry.set_name(connection_id, message.name)
            self._registry.set_room(connection_id, room_id)
            peers = self._rooms.join(room_id, connection_id)
            name = self._registry.resolve_name(connection_id)

        logger.info(f"Connection {connection_id} joined room {room_id} ({len(peers)} peers)")

        ack = JoinedMessage(self_id=connection_id, peers=peers)
        results = [await self._transport.send(connection_id, Event.JOINED, ack)]

        announcement = PeerJoinSignal(from_=connection_id, name=name)
        fanout = await self._transport.send_many(peers, Event.SIGNAL, announcement)
        results.extend(fanout.values())
        return results

    async def _handle_signal(self, connection_id: str, message: SignalMessage) -> List[DeliveryResult]:
        target = message.to

        if target not in self._registry:
            logger.debug(f"Signal from {connection_id} to unknown connection {target}")
            return [DeliveryResult.NO_SUCH_RECIPIENT]

        payload = {**message.payload(), "from": connection_id}
        return [await self._transport.send(target, Event.SIGNAL, payload)]

    async def _handle_chat(self, connection_id: str, message: ChatMessage) -> List[DeliveryResult]:
        async with self._lock:
            room_id = self._registry.get_room(connection_id)
            if room_id is None or not message.text:
                return []
            sender = self._registry.resolve_name(connection_id)
            recipients = self._rooms.members(room_id)

        line = ChatBroadcast(from_=sender, text=message.text, at=message.at or self.now())
        fanout = await self._transport.send_many(recipients, Event.CHAT, line)
        return list(fanout.values())

    async def _handle_ping_time(self, connection_id: str, message: PingTimeMessage) -> List[DeliveryResult]:
        pong = PongTimeMessage(current_time=self.now(), t0=message.t0)
        return [await self._transport.send(connection_id, Event.PONG_TIME, pong)]

    async def _handle_whiteboard(self, connection_id: str, message: WhiteboardMessage) -> List[DeliveryResult]:
        async with self._lock:
            room_id = self._registry.get_room(connection_id)
            if room_id is None:
                return []
            recipients = self._rooms.members(room_id) - {connection_id}

        fanout = await self._transport.send_many(recipients, Event.WHITEBOARD, message.payload)
        return list(fanout.values())


__all__ = ["Clock", "RelayEngine", "epoch_millis"]
