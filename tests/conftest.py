import asyncio
import json
from typing import List

import pytest

from core.errors import TransportError
from utils.config_loader import ConfigLoader


class FakeTransport:
    """In-memory stand-in for ``WebSocketManager``."""

    def __init__(self, url, heartbeat=None, fail_connect: bool = False):
        self.url = url
        self.heartbeat = heartbeat
        self.fail_connect = fail_connect
        self.sent: List[dict] = []
        self.connected = False
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue()

    async def connect(self):
        if self.fail_connect:
            raise TransportError("connection refused")
        self.connected = True

    async def send_json(self, payload):
        self.sent.append(payload)

    def feed(self, message):
        if isinstance(message, dict):
            message = json.dumps(message)
        self._queue.put_nowait(message)

    def fail(self, exc: Exception):
        self._queue.put_nowait(exc)

    async def messages(self):
        while True:
            item = await self._queue.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self):
        self.closed = True
        self._queue.put_nowait(None)


class TransportRecorder:
    def __init__(self, fail_connect: bool = False):
        self.fail_connect = fail_connect
        self.created: List[FakeTransport] = []

    def __call__(self, url, heartbeat):
        transport = FakeTransport(url, heartbeat, fail_connect=self.fail_connect)
        self.created.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.created[-1]


@pytest.fixture
def make_settings():
    def _build(debounce_ms: int = 0, throttle_ms: int = 20, keepalive_sec=None, **service):
        venue_cfg = {"throttle_ms": throttle_ms}
        bybit_cfg = dict(venue_cfg)
        if keepalive_sec is not None:
            bybit_cfg["keepalive_interval_sec"] = keepalive_sec
        raw = {
            "service": {
                "connect_debounce_ms": debounce_ms,
                "default_throttle_ms": throttle_ms,
                **service,
            },
            "venues": {"OKX": venue_cfg, "Bybit": bybit_cfg, "Deribit": venue_cfg},
        }
        return ConfigLoader.parse_settings(raw)

    return _build


@pytest.fixture
def transports():
    return TransportRecorder()


@pytest.fixture
def failing_transports():
    return TransportRecorder(fail_connect=True)


@pytest.fixture
def okx_book_message():
    return {
        "arg": {"channel": "books", "instId": "BTC-USDT"},
        "action": "snapshot",
        "data": [
            {
                "asks": [["41006.8", "0.60", "0", "1"], ["41005.1", "1.20", "0", "2"]],
                "bids": [["41004.9", "0.50", "0", "1"], ["41003.0", "2.00", "0", "3"]],
                "ts": "1700000000123",
            }
        ],
    }


async def wait_for(predicate, timeout: float = 1.0, interval: float = 0.005):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)
