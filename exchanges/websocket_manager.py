from __future__ import annotations

import json
from typing import AsyncIterator, Optional

import aiohttp

from core.errors import TransportClosedError, TransportError
from utils.logger import FeedLogger


class WebSocketManager:
    """Single-shot websocket transport; failures surface as ``TransportError``."""

    def __init__(
        self,
        url: str,
        session: aiohttp.ClientSession,
        logger: FeedLogger | None = None,
        heartbeat: float | None = None,
    ):
        self.url = url
        self.session = session
        self.logger = logger or FeedLogger(__name__)
        self.heartbeat = heartbeat
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._closing = False

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        try:
            self._ws = await self.session.ws_connect(self.url, heartbeat=self.heartbeat)
        except (aiohttp.ClientError, OSError) as exc:
            raise TransportError(f"websocket connect failed: {exc}", exc)
        self.logger.info("websocket connected", url=self.url)

    async def send_json(self, payload: dict) -> None:
        if not self.is_open:
            raise TransportClosedError("websocket is not open")
        try:
            await self._ws.send_str(json.dumps(payload))
        except (aiohttp.ClientError, ConnectionResetError) as exc:
            raise TransportError(f"websocket send failed: {exc}", exc)
        self.logger.debug("websocket sent", payload=json.dumps(payload))

    async def messages(self) -> AsyncIterator[str]:
        """Yield text frames until the socket ends, then raise why it ended."""
        ws = self._ws
        if ws is None:
            raise TransportClosedError("websocket is not connected")
        while True:
            msg = await ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                yield msg.data
            elif msg.type == aiohttp.WSMsgType.BINARY:
                yield msg.data.decode("utf-8", errors="replace")
            elif msg.type in (aiohttp.WSMsgType.PING, aiohttp.WSMsgType.PONG):
                continue
            elif self._closing:
                return
            elif msg.type == aiohttp.WSMsgType.ERROR:
                error = ws.exception() or msg.data
                raise TransportError(f"websocket error: {error}", error if isinstance(error, Exception) else None)
            else:
                code = ws.close_code
                raise TransportClosedError(f"websocket closed by venue (code={code})")

    async def close(self) -> None:
        self._closing = True
        if self._ws and not self._ws.closed:
            await self._ws.close()
        self._ws = None
