from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import Callable, List, Optional

import aiohttp

from core.book_analytics import BookAnalyzer, BookImbalance, SlippageWarning
from core.fill_simulation import simulate
from core.models import (
    BookSnapshot,
    ConnectionState,
    ConnectionStatus,
    FillMetrics,
    SimulatedOrder,
    Venue,
)
from exchanges.connection_supervisor import ConnectionSupervisor, TransportFactory
from utils.config_loader import Settings
from utils.logger import FeedLogger
from utils.mock_orderbook import MockBookGenerator
from utils.telemetry import FeedTelemetry

Listener = Callable[["OrderbookHandle"], None]


class OrderbookHandle:
    """Live view of one selection: latest book, connection status and the simulated order."""

    def __init__(self, service: "OrderbookService", venue: Venue | str, symbol: str):
        self._service = service
        self.venue = Venue.parse(venue)
        self.venue_name = self.venue.value if self.venue else str(venue)
        self.symbol = symbol
        self.latest_snapshot: Optional[BookSnapshot] = None
        self.status = ConnectionState(ConnectionStatus.IDLE)
        self.error_message: Optional[str] = None
        self.simulated_order: Optional[SimulatedOrder] = None
        self.is_simulating = False
        self._listeners: List[Listener] = []
        self._simulation_task: Optional[asyncio.Task] = None
        self._analyzer = BookAnalyzer()

    @property
    def is_connected(self) -> bool:
        return self.status.is_live

    @property
    def is_fallback(self) -> bool:
        return self.status.is_fallback

    @property
    def status_text(self) -> str:
        if self.is_connected:
            return f"Websocket connected to {self.venue_name}"
        if self.error_message:
            return self.error_message
        if self.status.status == ConnectionStatus.CLOSED:
            return f"Disconnected from {self.venue_name}"
        return f"Connecting to {self.venue_name}"

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def matches(self, order: SimulatedOrder) -> bool:
        return order.venue == self.venue and order.symbol == self.symbol

    def metrics(self) -> Optional[FillMetrics]:
        """Fill metrics of the simulated order against the current book, computed fresh."""
        order = self.simulated_order
        if order is None or self.latest_snapshot is None or not self.matches(order):
            return None
        return simulate(order, self.latest_snapshot)

    def slippage_warning(self) -> Optional[SlippageWarning]:
        order = self.simulated_order
        if order is None or not self.matches(order):
            return None
        return self._analyzer.slippage_warning(order, self.latest_snapshot)

    def imbalance(self) -> Optional[BookImbalance]:
        return self._analyzer.imbalance(self.latest_snapshot)

    def submit_simulation(self, order: SimulatedOrder, delay_ms: int = 0) -> None:
        self._cancel_simulation()
        self.is_simulating = True
        if delay_ms > 0:
            self._simulation_task = asyncio.create_task(self._simulate_after(order, delay_ms))
            return
        self._set_simulation(order)

    def clear_simulation(self) -> None:
        self._cancel_simulation()
        self.simulated_order = None
        self.is_simulating = False
        self._notify()

    async def unsubscribe(self) -> None:
        await self._service.unsubscribe(self)

    async def _simulate_after(self, order: SimulatedOrder, delay_ms: int) -> None:
        await asyncio.sleep(delay_ms / 1000)
        self._simulation_task = None
        self._set_simulation(order)

    def _set_simulation(self, order: SimulatedOrder) -> None:
        self.simulated_order = order
        self.is_simulating = False
        self._notify()

    def _cancel_simulation(self) -> None:
        task, self._simulation_task = self._simulation_task, None
        if task and not task.done():
            task.cancel()

    async def _close(self) -> None:
        task = self._simulation_task
        self._cancel_simulation()
        if task:
            with suppress(asyncio.CancelledError):
                await task
        self.is_simulating = False
        self.error_message = None
        self.status = ConnectionState(ConnectionStatus.CLOSED)

    def _apply_snapshot(self, snapshot: BookSnapshot) -> None:
        self.latest_snapshot = snapshot
        self._notify()

    def _apply_status(self, state: ConnectionState) -> None:
        self.status = state
        self.error_message = state.reason if state.status == ConnectionStatus.DEGRADED else None
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)


class OrderbookService:
    """Composition root: one supervisor for the active selection, swapped on change."""

    def __init__(
        self,
        settings: Settings | None = None,
        session: aiohttp.ClientSession | None = None,
        transport_factory: TransportFactory | None = None,
        logger: FeedLogger | None = None,
        mock_seed: int | None = None,
        telemetry: FeedTelemetry | None = None,
    ):
        self.settings = settings or Settings.defaults()
        self.session = session
        self.transport_factory = transport_factory
        self.logger = logger or FeedLogger("orderbook_service")
        self.mock_seed = mock_seed
        self.telemetry = telemetry or FeedTelemetry(logger=self.logger)
        self._owns_session = False
        self._supervisor: Optional[ConnectionSupervisor] = None
        self._handle: Optional[OrderbookHandle] = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "OrderbookService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def current(self) -> Optional[OrderbookHandle]:
        return self._handle

    async def subscribe(self, venue: Venue | str, symbol: str) -> OrderbookHandle:
        async with self._lock:
            await self._teardown_locked()
            handle = OrderbookHandle(self, venue, symbol)
            if self.session is None and self.transport_factory is None:
                self.session = aiohttp.ClientSession()
                self._owns_session = True
            supervisor = ConnectionSupervisor(
                venue,
                symbol,
                on_snapshot=handle._apply_snapshot,
                on_status=handle._apply_status,
                settings=self.settings,
                session=self.session,
                transport_factory=self.transport_factory,
                mock_generator=MockBookGenerator(
                    handle.venue,
                    levels=self.settings.service.max_levels,
                    seed=self.mock_seed,
                ),
                logger=self.logger,
                telemetry=self.telemetry,
            )
            self._handle = handle
            self._supervisor = supervisor
            supervisor.start()
            self.logger.info("subscribed to orderbook", venue=handle.venue_name, symbol=symbol)
            return handle

    async def unsubscribe(self, handle: OrderbookHandle | None = None) -> None:
        async with self._lock:
            if handle is not None and handle is not self._handle:
                return
            await self._teardown_locked()

    @staticmethod
    def simulate(order: SimulatedOrder, snapshot: BookSnapshot) -> FillMetrics:
        return simulate(order, snapshot)

    async def close(self) -> None:
        await self.unsubscribe()
        if self._owns_session and self.session is not None:
            await self.session.close()
            self.session = None
            self._owns_session = False

    async def _teardown_locked(self) -> None:
        supervisor, self._supervisor = self._supervisor, None
        handle, self._handle = self._handle, None
        if supervisor is not None:
            await supervisor.dispose()
        if handle is not None:
            await handle._close()
            self.logger.info("unsubscribed from orderbook", venue=handle.venue_name, symbol=handle.symbol)
