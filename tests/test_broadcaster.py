"""
Tests for event fan-out.
"""

import pytest

from tacmap.hub.broadcaster import EventBroadcaster
from tacmap.hub.events import Outbound
from tacmap.hub.registry import ConnectionRegistry


@pytest.fixture
def wired(transport_factory):
    registry = ConnectionRegistry()
    transports = {cid: transport_factory() for cid in ("c1", "c2", "c3")}
    for cid, transport in transports.items():
        registry.open(transport, connection_id=cid)
    return EventBroadcaster(registry), transports


class TestPublish:

    @pytest.mark.asyncio
    async def test_reaches_everyone(self, wired):
        broadcaster, transports = wired
        delivered = await broadcaster.publish("stop mission", {"missionid": "Alpha"})

        assert delivered == 3
        for transport in transports.values():
            assert transport.frames == [{"event": "stop mission", "data": {"missionid": "Alpha"}}]
        assert broadcaster.frames_sent == 3
        assert broadcaster.messages_relayed == 0

    @pytest.mark.asyncio
    async def test_recipients_only(self, wired):
        broadcaster, transports = wired
        delivered = await broadcaster.publish("unit joined", {}, frozenset({"c1", "c3", "gone"}))

        assert delivered == 2
        assert transports["c2"].frames == []
        assert transports["c3"].events() == ["unit joined"]

    @pytest.mark.asyncio
    async def test_failed_send_skipped(self, wired):
        broadcaster, transports = wired
        transports["c2"].fail = True

        assert await broadcaster.publish("stop mission") == 2
        assert len(broadcaster.registry) == 3


class TestRelay:

    @pytest.mark.asyncio
    async def test_payload_untouched(self, wired):
        broadcaster, transports = wired
        payload = {"message": {"net": "netA", "text": "hi"}, "extra": [1, 2]}

        delivered = await broadcaster.relay("msg sent", payload)

        assert delivered == 3
        assert transports["c1"].frames[0]["data"] is payload
        assert broadcaster.messages_relayed == 3

    @pytest.mark.asyncio
    async def test_deliver_routes_relayed_frames(self, wired):
        """Only frames marked as relays count toward messages_relayed."""
        broadcaster, transports = wired
        delivered = await broadcaster.deliver([
            Outbound("set mission", {"missionid": "Alpha"}),
            Outbound("add entity", {"_id": "e1"}, frozenset({"c1"}), relay=True),
        ])

        assert delivered == 4
        assert broadcaster.messages_relayed == 1
        assert transports["c1"].events() == ["set mission", "add entity"]
        assert transports["c2"].events() == ["set mission"]


class TestSend:

    @pytest.mark.asyncio
    async def test_single_connection(self, wired):
        broadcaster, transports = wired

        assert await broadcaster.send("c2", "error", {"message": "bad"}) is True
        assert transports["c2"].frames == [{"event": "error", "data": {"message": "bad"}}]
        assert transports["c1"].frames == []

    @pytest.mark.asyncio
    async def test_unknown_connection(self, wired):
        broadcaster, _ = wired
        assert await broadcaster.send("nobody", "error") is False
