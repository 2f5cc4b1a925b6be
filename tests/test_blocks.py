import asyncio
import json
from typing import List

import pytest
from websockets.exceptions import ConnectionClosed

from flash_arb import blocks
from flash_arb.blocks import (
    BackpressurePolicy,
    BlockChannel,
    NewHeadsSubscription,
    PollingHeadSource,
    parse_new_head,
)
from flash_arb.chain_client import BlockHeader, ChainClient

from conftest import FakeWeb3


def test_drop_policy_keeps_only_newest_pending_head() -> None:
    async def scenario():
        channel = BlockChannel(BackpressurePolicy.DROP)
        for n in (1, 2, 3):
            await channel.publish(BlockHeader(number=n))
        assert channel.pending() == 1
        head = await channel.get()
        return channel, head

    channel, head = asyncio.run(scenario())
    assert head.number == 3
    assert channel.dropped == 2
    assert channel.published == 3


def test_queue_policy_preserves_arrival_order() -> None:
    async def scenario():
        channel = BlockChannel(BackpressurePolicy.QUEUE)
        for n in (10, 11, 12):
            await channel.publish(BlockHeader(number=n))
        return [(await channel.get()).number for _ in range(3)], channel.dropped

    numbers, dropped = asyncio.run(scenario())
    assert numbers == [10, 11, 12]
    assert dropped == 0


def test_bounded_queue_makes_producer_wait() -> None:
    async def scenario():
        channel = BlockChannel(BackpressurePolicy.QUEUE, max_pending=1)
        await channel.publish(BlockHeader(number=1))
        blocked = asyncio.create_task(channel.publish(BlockHeader(number=2)))
        await asyncio.sleep(0.01)
        was_blocked = not blocked.done()
        first = await channel.get()
        await asyncio.wait_for(blocked, timeout=1.0)
        second = await channel.get()
        return was_blocked, first.number, second.number

    assert asyncio.run(scenario()) == (True, 1, 2)


def test_parse_new_head_notification() -> None:
    message = json.dumps(
        {
            "jsonrpc": "2.0",
            "method": "eth_subscription",
            "params": {
                "subscription": "0xabc",
                "result": {"number": "0x10", "hash": "0x" + "ab" * 32, "timestamp": "0x5f5e1000"},
            },
        }
    )
    header = parse_new_head(message)
    assert header == BlockHeader(number=16, hash="0x" + "ab" * 32, timestamp=0x5F5E1000)


@pytest.mark.parametrize(
    "message",
    [
        json.dumps({"jsonrpc": "2.0", "id": 1, "result": "0xabc"}),
        json.dumps({"method": "eth_subscription", "params": {"result": {}}}),
        "[]",
        "null",
        json.dumps({"method": "eth_subscription", "params": ["0xabc"]}),
    ],
)
def test_parse_new_head_rejects_other_messages(message) -> None:
    with pytest.raises((ValueError, KeyError)):
        parse_new_head(message)


class _ScriptedClient:
    def __init__(self, script: List[object]) -> None:
        self._script = list(script)

    async def latest_header(self) -> BlockHeader:
        item = self._script.pop(0)
        if isinstance(item, Exception):
            raise item
        return BlockHeader(number=item)


def test_polling_source_publishes_each_new_head_once_and_reports_errors() -> None:
    errors: List[BaseException] = []

    async def scenario():
        channel = BlockChannel(BackpressurePolicy.QUEUE)
        client = _ScriptedClient([5, 5, ConnectionError("reset"), 6, 9, 8])
        source = PollingHeadSource(client, channel, poll_interval=0.01, on_error=errors.append)
        for _ in range(6):
            await source.poll_once()
        return [(await channel.get()).number for _ in range(channel.pending())], source.last_number

    numbers, last = asyncio.run(scenario())
    assert numbers == [5, 6, 9]
    assert last == 9
    assert len(errors) == 1 and isinstance(errors[0], ConnectionError)


def test_polling_source_run_stops_on_event(fake_web3: FakeWeb3) -> None:
    async def scenario():
        channel = BlockChannel(BackpressurePolicy.QUEUE)
        stop = asyncio.Event()
        source = PollingHeadSource(ChainClient(fake_web3), channel, poll_interval=0.01)
        task = asyncio.create_task(source.run(stop))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)
        return channel.published, await channel.get()

    published, first = asyncio.run(scenario())
    assert published >= 1
    assert first.number == 101
    assert first.hash == "0x" + "65" * 32


def _head_message(number: int) -> str:
    return json.dumps(
        {
            "jsonrpc": "2.0",
            "method": "eth_subscription",
            "params": {"subscription": "0xabc", "result": {"number": hex(number), "hash": "0x" + "cd" * 32}},
        }
    )


class _ScriptedSocket:
    """Replays recv() items in order; exceptions in the script are raised."""

    def __init__(self, script: List[object]) -> None:
        self._script = list(script)
        self.sent: List[dict] = []

    async def __aenter__(self) -> "_ScriptedSocket":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def send(self, message: str) -> None:
        self.sent.append(json.loads(message))

    async def recv(self) -> str:
        item = self._script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


def _patch_connect(monkeypatch, socket: _ScriptedSocket) -> List[str]:
    urls: List[str] = []

    def connect(url, *args, **kwargs):
        urls.append(url)
        return socket

    monkeypatch.setattr(blocks.websockets, "connect", connect)
    return urls


def test_new_heads_subscription_survives_bad_messages_and_ends_on_close(monkeypatch) -> None:
    socket = _ScriptedSocket(
        [
            json.dumps({"jsonrpc": "2.0", "id": 1, "result": "0xsub"}),
            "[]",
            "null",
            "not json at all",
            json.dumps({"jsonrpc": "2.0", "method": "eth_subscription", "params": []}),
            _head_message(7),
            _head_message(8),
            ConnectionClosed(None, None),
        ]
    )
    urls = _patch_connect(monkeypatch, socket)
    errors: List[BaseException] = []

    async def scenario():
        channel = BlockChannel(BackpressurePolicy.QUEUE)
        feed = NewHeadsSubscription("wss://node.example/ws", channel, on_error=errors.append)
        await asyncio.wait_for(feed.run(asyncio.Event()), timeout=1.0)
        heads = [(await channel.get()).number for _ in range(channel.pending())]
        return feed, heads

    feed, heads = asyncio.run(scenario())

    assert socket.sent == [{"jsonrpc": "2.0", "id": 1, "method": "eth_subscribe", "params": ["newHeads"]}]
    assert feed.subscription_id == "0xsub"
    assert heads == [7, 8]
    # four bad messages plus the closed connection
    assert len(errors) == 5
    assert isinstance(errors[-1], ConnectionClosed)
    # no reconnect after the close
    assert urls == ["wss://node.example/ws"]


def test_new_heads_subscription_rejected_by_node(monkeypatch) -> None:
    socket = _ScriptedSocket(
        [json.dumps({"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "subscriptions not supported"}})]
    )
    _patch_connect(monkeypatch, socket)
    channel = BlockChannel(BackpressurePolicy.QUEUE)

    with pytest.raises(RuntimeError, match="eth_subscribe newHeads failed"):
        asyncio.run(NewHeadsSubscription("wss://node.example/ws", channel).run(asyncio.Event()))
    assert channel.published == 0


def test_new_heads_subscription_stops_on_event(monkeypatch) -> None:
    socket = _ScriptedSocket([json.dumps({"jsonrpc": "2.0", "id": 1, "result": "0xsub"}), _head_message(3)])
    _patch_connect(monkeypatch, socket)

    async def scenario():
        channel = BlockChannel(BackpressurePolicy.DROP)
        stop = asyncio.Event()
        feed = NewHeadsSubscription("wss://node.example/ws", channel)
        original_publish = channel.publish

        async def publish_then_stop(header):
            await original_publish(header)
            stop.set()

        channel.publish = publish_then_stop
        await asyncio.wait_for(feed.run(stop), timeout=1.0)
        return await channel.get()

    assert asyncio.run(scenario()).number == 3
