"""
RelayKit - Signaling relay and side-channel transport for peer-to-peer sessions.
"""

from relaykit.config import Settings
from relaykit.registry import Connection, ConnectionRegistry
from relaykit.rooms import RoomTable
from relaykit.transport import ConnectionHub, DeliveryResult, Transport
from relaykit.storage import (
    ChunkKey,
    ChunkSink,
    DiskChunkSink,
    MemoryChunkSink,
    UploadError,
    ChunkTooLargeError,
    InvalidChunkKeyError,
)

# Protocol message types
from relaykit.protocol import (
    Event,
    Frame,
    # Client messages
    JoinMessage,
    SignalMessage,
    ChatMessage,
    PingTimeMessage,
    WhiteboardMessage,
    ClientMessage,
    # Server messages
    JoinedMessage,
    PeerJoinSignal,
    ChatBroadcast,
    PongTimeMessage,
    LeftMessage,
    ServerMessage,
    parse_client_message,
    encode_frame,
)

# Relay engine
from relaykit.relay import RelayEngine, epoch_millis

# Server
from relaykit.server import RelayServer

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "Settings",
    # Registry and rooms
    "Connection",
    "ConnectionRegistry",
    "RoomTable",
    # Transport
    "ConnectionHub",
    "DeliveryResult",
    "Transport",
    # Upload sinks
    "ChunkKey",
    "ChunkSink",
    "DiskChunkSink",
    "MemoryChunkSink",
    "UploadError",
    "ChunkTooLargeError",
    "InvalidChunkKeyError",
    # Protocol
    "Event",
    "Frame",
    "JoinMessage",
    "SignalMessage",
    "ChatMessage",
    "PingTimeMessage",
    "WhiteboardMessage",
    "ClientMessage",
    "JoinedMessage",
    "PeerJoinSignal",
    "ChatBroadcast",
    "PongTimeMessage",
    "LeftMessage",
    "ServerMessage",
    "parse_client_message",
    "encode_frame",
    # Relay
    "RelayEngine",
    "epoch_millis",
    # Server
    "RelayServer",
]
