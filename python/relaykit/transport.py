"""
Transport adapter for RelayKit.

The relay engine never touches sockets directly. It hands frames to a
Transport, which reports what happened to each delivery attempt.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Iterable, Union

from fastapi import WebSocket

from .protocol import Event, encode_frame

logger = logging.getLogger(__name__)


class DeliveryResult(str, Enum):
    """Outcome of a single fire-and-forget delivery."""

    DELIVERED = "delivered"
    NO_SUCH_RECIPIENT = "no_such_recipient"
    FAILED = "failed"


class Transport(ABC):
    """Per-connection message channel used by the relay engine."""

    @abstractmethod
    async def send(
        self, connection_id: str, event: Union[Event, str], data: Any
    ) -> DeliveryResult:
        """Deliver one frame to one connection."""
        pass

    async def send_many(
        self, connection_ids: Iterable[str], event: Union[Event, str], data: Any
    ) -> Dict[str, DeliveryResult]:
        """
        Deliver the same frame to several connections concurrently.

        Returns:
            Mapping of connection id to its delivery result.
        """
        ids = list(connection_ids)
        if not ids:
            return {}
        results = await asyncio.gather(*(self.send(cid, event, data) for cid in ids))
        return dict(zip(ids, results))


class ConnectionHub(Transport):
    """Transport backed by live FastAPI WebSocket connections."""

    def __init__(self) -> None:
        self._sockets: Dict[str, WebSocket] = {}

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._sockets

    @property
    def connection_count(self) -> int:
        """Get number of attached sockets."""
        return len(self._sockets)

    def attach(self, connection_id: str, websocket: WebSocket) -> None:
        """Make a connection reachable."""
        self._sockets[connection_id] = websocket

    def detach(self, connection_id: str) -> None:
        """Stop delivering to a connection. Safe to call twice."""
        self._sockets.pop(connection_id, None)

    async def send(
        self, connection_id: str, event: Union[Event, str], data: Any
    ) -> DeliveryResult:
        websocket = self._sockets.get(connection_id)
        if websocket is None:
            return DeliveryResult.NO_SUCH_RECIPIENT

        try:
            await websocket.send_json(encode_frame(event, data))
        except Exception as e:
            logger.warning(f"Failed to send to connection {connection_id}: {e}")
            return DeliveryResult.FAILED
        return DeliveryResult.DELIVERED


__all__ = ["DeliveryResult", "Transport", "ConnectionHub"]
