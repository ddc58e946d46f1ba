import asyncio
import sys
from pathlib import Path

import pytest

# Ensure zonebridge and the fake device are importable when running tests directly
ROOT = Path(__file__).resolve().parents[1]
for path in (ROOT, ROOT / "tests"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from zonebridge.exceptions import BridgeConnectionError  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeConnection:
    """In-memory stand-in for BridgeConnection that records sent frames."""

    def __init__(self):
        self.connected = False
        self.fail = False
        self.sent = []
        self.started = False
        self._frame_listeners = []
        self._link_listeners = []

    @property
    def is_connected(self) -> bool:
        return self.connected

    def add_frame_listener(self, listener):
        self._frame_listeners.append(listener)

    def add_link_listener(self, listener):
        self._link_listeners.append(listener)

    async def start(self):
        self.started = True

    async def stop(self):
        self.started = False

    async def send(self, frame, timeout=0.3):
        if self.fail:
            raise BridgeConnectionError("send failed")
        self.sent.append(frame)

    def receive(self, frame):
        for listener in self._frame_listeners:
            listener(frame)

    def link(self, established):
        self.connected = established
        for listener in self._link_listeners:
            listener(established)


async def wait_until(predicate, timeout: float = 5.0, interval: float = 0.01) -> None:
    """Poll until predicate() is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met within %.1fs" % timeout)
        await asyncio.sleep(interval)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def connection():
    return FakeConnection()
