from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import Callable, Dict, Optional

import aiohttp

from core.connection_fsm import ConnectionEvent, ConnectionStateMachine
from core.errors import TransportClosedError, TransportError, UnsupportedVenueError
from core.models import BookSnapshot, ConnectionState, Venue
from exchanges.adapters import get_adapter
from exchanges.base_adapter import VenueAdapter
from exchanges.rate_limiter import UpdateThrottle
from exchanges.websocket_manager import WebSocketManager
from utils.config_loader import Settings
from utils.logger import FeedLogger
from utils.mock_orderbook import MockBookGenerator
from utils.telemetry import FeedTelemetry

TransportFactory = Callable[[str, Optional[float]], WebSocketManager]
SnapshotCallback = Callable[[BookSnapshot], None]
StatusCallback = Callable[[ConnectionState], None]


class ConnectionSupervisor:
    """Owns one (venue, symbol) feed: debounce, connect, subscribe, keepalive, fallback, teardown.

    Failures never retry. Transport errors and closes move the supervisor to
    ``DEGRADED`` and it serves synthetic books until disposed; a new selection
    builds a new supervisor. Every callback checks the disposal flag, so once
    :meth:`dispose` returns nothing from this instance reaches the consumer.
    """

    def __init__(
        self,
        venue: Venue | str,
        symbol: str,
        on_snapshot: SnapshotCallback,
        on_status: StatusCallback,
        settings: Settings | None = None,
        session: aiohttp.ClientSession | None = None,
        transport_factory: TransportFactory | None = None,
        mock_generator: MockBookGenerator | None = None,
        logger: FeedLogger | None = None,
        telemetry: FeedTelemetry | None = None,
    ):
        if session is None and transport_factory is None:
            raise ValueError("session or transport_factory is required")
        self.venue = Venue.parse(venue)
        self.venue_name = self.venue.value if self.venue else str(venue)
        self.symbol = symbol
        self.settings = settings or Settings.defaults()
        self.session = session
        self.venue_cfg = self.settings.venue_config(self.venue)
        self.logger = (logger or FeedLogger(__name__)).bind(venue=self.venue_name, symbol=symbol)
        self._on_snapshot = on_snapshot
        self._on_status = on_status
        self._transport_factory = transport_factory or self._default_transport
        self.mock = mock_generator or MockBookGenerator(self.venue, self.settings.service.max_levels)
        self.telemetry = telemetry or FeedTelemetry(logger=self.logger)
        self.fsm = ConnectionStateMachine(f"{self.venue_name}:{symbol}", self.logger)
        self.fsm.on_change(self._publish_status)
        self.throttle: UpdateThrottle[BookSnapshot] = UpdateThrottle(
            self._publish_snapshot,
            self.venue_cfg.throttle_ms,
            logger=self.logger,
        )
        self.latest_snapshot: Optional[BookSnapshot] = None
        self._transport: Optional[WebSocketManager] = None
        self._tasks: Dict[str, asyncio.Task] = {}
        self._started = False
        self._disposed = False

    @property
    def state(self) -> ConnectionState:
        return self.fsm.state

    @property
    def disposed(self) -> bool:
        return self._disposed

    def start(self) -> None:
        if self._started or self._disposed:
            return
        self._started = True
        self._tasks["connection"] = asyncio.create_task(self._run())

    async def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        current = asyncio.current_task()
        tasks = [task for task in self._tasks.values() if task is not current]
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await self.throttle.aclose()
        if tasks:
            with suppress(asyncio.CancelledError):
                await asyncio.gather(*tasks, return_exceptions=True)
        if self._transport:
            await self._transport.close()
            self._transport = None
        self.telemetry.set_connected(self.venue_name, False)
        self.fsm.transition(ConnectionEvent.DISPOSE)
        self.logger.info("supervisor disposed")

    async def _run(self) -> None:
        await asyncio.sleep(self.settings.service.connect_debounce_ms / 1000)
        if self._disposed:
            return
        try:
            adapter = get_adapter(
                self.venue or self.venue_name,
                max_levels=self.settings.service.max_levels,
                logger=self.logger,
            )
        except UnsupportedVenueError as exc:
            self._degrade(ConnectionEvent.UNSUPPORTED, str(exc))
            return

        self.fsm.transition(ConnectionEvent.START)
        subscription = adapter.build_subscription(self.symbol)
        if subscription is None:
            self._degrade(
                ConnectionEvent.FAILED,
                f"Unsupported symbol {self.symbol} on {self.venue_name}",
            )
            return

        url = self.venue_cfg.url or adapter.endpoint()
        try:
            await self._stream(adapter, url, subscription)
        except TransportClosedError as exc:
            await self._fail(f"WebSocket connection to {self.venue_name} closed", exc)
        except TransportError as exc:
            await self._fail(f"WebSocket failed to connect {self.venue_name}", exc)
        except Exception as exc:  # pragma: no cover - defensive catch
            self.logger.exception("feed loop crashed", error=str(exc))
            await self._fail(f"Feed for {self.venue_name} stopped unexpectedly", exc)

    async def _stream(self, adapter: VenueAdapter, url: str, subscription: dict) -> None:
        transport = self._transport_factory(url, self.venue_cfg.heartbeat_sec)
        self._transport = transport
        await transport.connect()
        if self._disposed:
            return
        self.fsm.transition(ConnectionEvent.OPENED)
        self.telemetry.set_connected(self.venue_name, True)
        await transport.send_json(subscription)
        self.logger.info("subscribed", url=url)

        interval = self.venue_cfg.keepalive_interval_sec
        if adapter.keepalive_payload and interval:
            self._tasks["keepalive"] = asyncio.create_task(
                self._keepalive(transport, adapter.keepalive_payload, interval)
            )

        async for raw in transport.messages():
            if self._disposed:
                return
            parsed = adapter.parse(raw)
            is_book = isinstance(parsed, BookSnapshot)
            self.telemetry.record_message(self.venue_name, is_book)
            if is_book:
                self.telemetry.record_snapshot(self.venue_name, "live")
                self.throttle.push(parsed)
        if not self._disposed:
            raise TransportClosedError("websocket stream ended")

    async def _keepalive(self, transport: WebSocketManager, payload: dict, interval: float) -> None:
        while not self._disposed:
            await asyncio.sleep(interval)
            if self._disposed:
                return
            try:
                await transport.send_json(payload)
            except TransportError as exc:
                self.logger.warn("keepalive send failed", error=str(exc))
                return
            self.logger.debug("keepalive sent")

    async def _fail(self, reason: str, exc: Exception) -> None:
        if self._disposed:
            return
        self.logger.warn("connection degraded", reason=reason, error=str(exc))
        keepalive = self._tasks.pop("keepalive", None)
        if keepalive:
            keepalive.cancel()
            with suppress(asyncio.CancelledError):
                await keepalive
        if self._transport:
            await self._transport.close()
            self._transport = None
        if self._disposed:
            return
        self._degrade(ConnectionEvent.FAILED, reason)

    def _degrade(self, event: ConnectionEvent, reason: str) -> None:
        if not self.fsm.transition(event, reason):
            return
        self.logger.warn("serving synthetic orderbook", reason=reason)
        self.telemetry.record_degraded(self.venue_name)
        self.throttle.emit_now(self._mock_snapshot())
        self._tasks["fallback"] = asyncio.create_task(self._fallback_loop())

    async def _fallback_loop(self) -> None:
        interval = self.throttle.interval or self.settings.service.default_throttle_ms / 1000
        while not self._disposed:
            await asyncio.sleep(interval)
            if self._disposed:
                return
            self.throttle.push(self._mock_snapshot())

    def _mock_snapshot(self) -> BookSnapshot:
        self.telemetry.record_snapshot(self.venue_name, "mock")
        return self.mock.generate()

    def _publish_snapshot(self, snapshot: BookSnapshot) -> None:
        if self._disposed:
            return
        self.latest_snapshot = snapshot
        self._on_snapshot(snapshot)

    def _publish_status(self, state: ConnectionState) -> None:
        if self._disposed:
            return
        self._on_status(state)

    def _default_transport(self, url: str, heartbeat: Optional[float]) -> WebSocketManager:
        return WebSocketManager(url, self.session, logger=self.logger, heartbeat=heartbeat)
