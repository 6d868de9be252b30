"""Pytest configuration and shared fixtures."""

import asyncio
import json
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from whale_relay.accounting.stats import RelayContext  # noqa: E402
from whale_relay.config.settings import RelayConfig  # noqa: E402

_END = object()


class FakeWebSocket:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self):
        self.sent = []
        self.pings = 0
        self.closed = False
        self._frames = asyncio.Queue()

    async def send(self, data):
        self.sent.append(data)

    async def ping(self):
        self.pings += 1
        waiter = asyncio.get_running_loop().create_future()
        waiter.set_result(0.0)
        return waiter

    async def close(self):
        self.closed = True
        self._frames.put_nowait(_END)

    def feed(self, message):
        """Queue a frame; dicts are JSON-encoded."""
        if isinstance(message, dict):
            message = json.dumps(message)
        self._frames.put_nowait(message)

    def drop(self, exc):
        """Make the next read raise ``exc``."""
        self._frames.put_nowait(exc)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._frames.get()
        if item is _END:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class FakeConnector:
    """Callable matching ``websockets.connect``; fails ``failures`` times first."""

    def __init__(self, failures=0):
        self.failures = failures
        self.calls = []
        self.sockets = []

    async def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.failures:
            self.failures -= 1
            raise OSError("connection refused")
        ws = FakeWebSocket()
        self.sockets.append(ws)
        return ws


class Sink:
    """Records webhook posts and answers with a configurable status."""

    def __init__(self, status=200, delay=0.0):
        self.status = status
        self.delay = delay
        self.received = []
        self.url = ""

    async def handler(self, request):
        self.received.append(await request.json())
        if self.delay:
            await asyncio.sleep(self.delay)
        return web.json_response({"ok": True}, status=self.status)

    async def wait_for(self, count, timeout=2.0):
        async def _poll():
            while len(self.received) < count:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def context():
    return RelayContext()


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def make_config():
    def _make(**overrides):
        base = {
            "ws_url": "wss://upstream.test/v1/ws",
            "api_key": "test-key",
            "sink_url": "",
            "heartbeat_interval_ms": 30_000,
            "reconnect_base_ms": 1,
            "reconnect_cap_ms": 8,
        }
        base.update(overrides)
        return RelayConfig(**base)

    return _make


@pytest_asyncio.fixture
async def sink():
    sink = Sink()
    app = web.Application()
    app.router.add_post("/hook", sink.handler)
    server = TestServer(app)
    await server.start_server()
    sink.url = str(server.make_url("/hook"))
    yield sink
    await server.close()


def flow_payload(**overrides):
    payload = {"ticker": "AAPL", "premium": 6_000_000, "call_put": "CALL", "volume": 1200, "strike": 190}
    payload.update(overrides)
    return payload


def dark_pool_payload(**overrides):
    payload = {"ticker": "TSLA", "size": 10_000, "price": 300, "average_price": 295}
    payload.update(overrides)
    return payload
