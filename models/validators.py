from __future__ import annotations

from typing import Sequence

from core.errors import ValidationError
from core.models import BookSnapshot, Level, OrderType, SimulatedOrder


def validate_simulated_order(order: SimulatedOrder) -> None:
    if not order.symbol:
        raise ValidationError("order symbol required")
    if order.quantity is None or order.quantity <= 0:
        raise ValidationError("order quantity must be positive")
    if order.kind == OrderType.LIMIT:
        if order.price is None or order.price <= 0:
            raise ValidationError("limit orders require a positive price")
    elif order.price is not None:
        raise ValidationError("market orders must not carry a price")


def _validate_side(levels: Sequence[Level], descending: bool) -> None:
    previous = None
    for price, size in levels:
        if price <= 0 or size <= 0:
            raise ValidationError("orderbook entries must be positive")
        if previous is not None:
            ordered = price < previous if descending else price > previous
            if not ordered:
                raise ValidationError("orderbook side out of order")
        previous = price


def validate_snapshot(snapshot: BookSnapshot) -> None:
    _validate_side(snapshot.bids, descending=True)
    _validate_side(snapshot.asks, descending=False)
    if snapshot.last_price < 0:
        raise ValidationError("last price cannot be negative")
    if snapshot.bids and snapshot.asks and snapshot.bids[0][0] >= snapshot.asks[0][0]:
        raise ValidationError("orderbook is crossed")
