from __future__ import annotations

from typing import Any, List, Optional, Set, Tuple, Union

import pytest

from relaykit.protocol import Event, encode_frame
from relaykit.relay import RelayEngine
from relaykit.transport import DeliveryResult, Transport


class RecordingTransport(Transport):
    """Transport that records every frame instead of sending it."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, Any]] = []
        self.gone: Set[str] = set()

    async def send(self, connection_id: str, event: Union[Event, str], data: Any) -> DeliveryResult:
        if connection_id in self.gone:
            return DeliveryResult.NO_SUCH_RECIPIENT
        frame = encode_frame(event, data)
        self.sent.append((connection_id, frame["event"], frame["data"]))
        return DeliveryResult.DELIVERED

    def frames_for(self, connection_id: str) -> List[Tuple[str, Any]]:
        return [(event, data) for cid, event, data in self.sent if cid == connection_id]

    def recipients(self, event: str) -> List[str]:
        return [cid for cid, ev, _ in self.sent if ev == event]

    def clear(self) -> None:
        self.sent.clear()


class FakeClock:
    """Millisecond clock under test control."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.value = start

    def __call__(self) -> int:
        return self.value

    def advance(self, ms: int) -> None:
        self.value += ms


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(transport: RecordingTransport, clock: FakeClock) -> RelayEngine:
    return RelayEngine(transport, clock=clock)


@pytest.fixture
def join(engine: RelayEngine):
    """Connect (if needed) and join a room."""

    async def _join(connection_id: str, room_id: str, name: Optional[str] = None):
        if connection_id not in engine.registry:
            await engine.connect(connection_id)
        return await engine.handle(connection_id, "join", {"roomId": room_id, "name": name})

    return _join
