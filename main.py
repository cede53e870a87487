from __future__ import annotations

import asyncio
from pathlib import Path

from core.models import OrderSide, OrderType, SimulatedOrder, Venue
from core.orderbook_service import OrderbookHandle, OrderbookService
from utils.config_loader import ConfigLoader
from utils.formatters import format_duration, format_percentage, format_price, format_quantity
from utils.logger import FeedLogger
from utils.telemetry import FeedTelemetry


async def main() -> None:
    loader = ConfigLoader()
    settings = loader.load_settings()
    log_file = Path(settings.logging.file) if settings.logging.file else None
    logger = FeedLogger("orderbook_sim", log_file=log_file)
    logger.set_level(settings.logging.level)
    telemetry = FeedTelemetry(logger=logger)
    if settings.telemetry.enable_prometheus:
        telemetry.serve(settings.telemetry.port)

    venue = Venue.parse(settings.service.default_venue)
    symbol = settings.service.default_symbol

    def _report(handle: OrderbookHandle) -> None:
        snapshot = handle.latest_snapshot
        if snapshot is None:
            logger.info("status", text=handle.status_text)
            return
        fields = {
            "text": handle.status_text,
            "best_bid": format_price(snapshot.best_bid),
            "best_ask": format_price(snapshot.best_ask),
        }
        metrics = handle.metrics()
        if metrics:
            fields.update(
                filled=format_quantity(metrics.filled_quantity),
                fill=format_percentage(metrics.fill_percentage),
                avg_price=format_price(metrics.avg_price),
                slippage=format_percentage(metrics.slippage_percent),
                impact=metrics.market_impact.value,
                time_to_fill=format_duration(metrics.time_to_fill_seconds),
            )
        imbalance = handle.imbalance()
        if imbalance:
            fields["imbalance"] = imbalance.imbalance_type.value
        logger.info("orderbook update", **fields)

    async with OrderbookService(settings, logger=logger, telemetry=telemetry) as service:
        handle = await service.subscribe(venue, symbol)
        handle.add_listener(_report)
        handle.submit_simulation(
            SimulatedOrder(
                venue=venue,
                symbol=symbol,
                kind=OrderType.MARKET,
                side=OrderSide.BUY,
                quantity=5.0,
            ),
            delay_ms=settings.service.simulation_delay_ms,
        )
        wait_forever = asyncio.Future()
        try:
            await wait_forever
        except asyncio.CancelledError:
            logger.info("shutting down...")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
