"""
Shared fixtures for TacMap tests.
"""

import pytest

from tacmap.hub import Hub


class FakeTransport:
    """Stands in for a WebSocket: records every frame sent to it."""

    def __init__(self, fail: bool = False):
        self.frames = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.frames.append(data)

    def events(self):
        return [f["event"] for f in self.frames]

    def last(self, event):
        for frame in reversed(self.frames):
            if frame["event"] == event:
                return frame["data"]
        return None

    def clear(self):
        self.frames.clear()


@pytest.fixture
def transport_factory():
    return FakeTransport


@pytest.fixture
def hub():
    return Hub()


@pytest.fixture
def scoped_hub():
    return Hub(scoped_delivery=True)
