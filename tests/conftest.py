from __future__ import annotations

import asyncio
from typing import List

import pytest

from scoutmap.broadcaster import Broadcaster
from scoutmap.models import GameEvent


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingBroadcaster(Broadcaster):
    """Keeps every broadcast event instead of sending it anywhere."""

    def __init__(self) -> None:
        super().__init__()
        self.events: List[GameEvent] = []

    def broadcast(self, event: GameEvent) -> int:
        self.events.append(event)
        return super().broadcast(event)


class FakeConnection:
    def __init__(self, closed: bool = False, fail: Exception | None = None):
        self.closed = closed
        self.fail = fail
        self.sent: List[str] = []
        self.gate: asyncio.Event | None = None

    async def send_str(self, data: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail is not None:
            raise self.fail
        self.sent.append(data)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorder() -> RecordingBroadcaster:
    return RecordingBroadcaster()
