"""
WebSocket protocol message types for RelayKit.

Every frame on the wire is a JSON object ``{"event": <name>, "data": <payload>}``.
Inbound payloads are parsed into Pydantic models; outbound payloads are
built from Pydantic models and serialized with their camelCase aliases.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

MAX_EVENT_LENGTH = 64


class Event(str, Enum):
    """Event names used on the wire."""

    # Inbound
    JOIN = "join"
    SIGNAL = "signal"
    CHAT = "chat"
    PING_TIME = "ping-time"
    WHITEBOARD = "whiteboard"
    # Outbound
    JOINED = "joined"
    PONG_TIME = "pong-time"
    LEFT = "left"


class Frame(BaseModel):
    """A single message envelope as sent over the WebSocket."""

    event: str = Field(..., min_length=1, max_length=MAX_EVENT_LENGTH)
    data: Any = None


# =============================================================================
# Client Message Types
# =============================================================================


class JoinMessage(BaseModel):
    """Client joins a room and announces its display name."""

    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(..., alias="roomId", min_length=1)
    name: Optional[str] = None


class SignalMessage(BaseModel):
    """
    Peer-addressed handshake message.

    Only ``to`` is required; every other field is carried through untouched.
    """

    model_config = ConfigDict(extra="allow")

    to: str = Field(..., min_length=1)

    def payload(self) -> Dict[str, Any]:
        """The payload as sent, including ``to`` and any extra fields."""
        return self.model_dump()


class ChatMessage(BaseModel):
    """Client sends a chat line to its room."""

    text: Any = None
    at: Any = None


class PingTimeMessage(BaseModel):
    """Latency probe; ``t0`` is echoed back verbatim."""

    t0: Any = None


class WhiteboardMessage(BaseModel):
    """Opaque whiteboard action relayed to the rest of the room."""

    payload: Any = None


# Union of all client message types
ClientMessage = Union[
    JoinMessage,
    SignalMessage,
    ChatMessage,
    PingTimeMessage,
    WhiteboardMessage,
]


# =============================================================================
# Server Message Types
# =============================================================================


class _OutboundMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize using the wire (alias) field names."""
        return self.model_dump(by_alias=True)


class JoinedMessage(_OutboundMessage):
    """Private acknowledgment sent to the joining connection."""

    self_id: str = Field(..., alias="selfId")
    peers: List[str] = Field(default_factory=list)


class PeerJoinSignal(_OutboundMessage):
    """Sent on the ``signal`` event to the other members of a room."""

    type: Literal["peer-join"] = "peer-join"
    from_: str = Field(..., alias="from")
    name: Optional[str] = None


class ChatBroadcast(_OutboundMessage):
    """Chat line delivered to every member of a room."""

    from_: str = Field(..., alias="from")
    text: Any
    at: Any


class PongTimeMessage(_OutboundMessage):
    """Reply to ``ping-time``."""

    current_time: int = Field(..., alias="currentTime")
    t0: Any = None


class LeftMessage(_OutboundMessage):
    """Sent to the remaining members when a connection goes away."""

    peer_id: str = Field(..., alias="peerId")


# Union of all server message types
ServerMessage = Union[
    JoinedMessage,
    PeerJoinSignal,
    ChatBroadcast,
    PongTimeMessage,
    LeftMessage,
]


# =============================================================================
# Message Parsing
# =============================================================================


def parse_client_message(event: str, data: Any) -> ClientMessage:
    """
    Parse the payload of an inbound event into a typed client message.

    ``ping-time`` and ``whiteboard`` accept any payload; the other events
    require a JSON object.

    Raises:
        ValueError: If the event is unknown or the payload is invalid
            (pydantic.ValidationError is a ValueError subclass).
    """
    if event == Event.PING_TIME.value:
        return PingTimeMessage(t0=data)
    if event == Event.WHITEBOARD.value:
        return WhiteboardMessage(payload=data)

    type_map = {
        Event.JOIN.value: JoinMessage,
        Event.SIGNAL.value: SignalMessage,
        Event.CHAT.value: ChatMessage,
    }

    if event not in type_map:
        raise ValueError(f"Unknown event: {event}")

    return type_map[event].model_validate(data)


def encode_frame(event: Union[Event, str], data: Any) -> Dict[str, Any]:
    """Build an outbound frame."""
    if isinstance(data, _OutboundMessage):
        data = data.to_wire()
    name = event.value if isinstance(event, Event) else event
    return {"event": name, "data": data}


__all__ = [
    "Event",
    "Frame",
    # Client messages
    "JoinMessage",
    "SignalMessage",
    "ChatMessage",
    "PingTimeMessage",
    "WhiteboardMessage",
    "ClientMessage",
    # Server messages
    "JoinedMessage",
    "PeerJoinSignal",
    "ChatBroadcast",
    "PongTimeMessage",
    "LeftMessage",
    "ServerMessage",
    # Parsing
    "parse_client_message",
    "encode_frame",
]
