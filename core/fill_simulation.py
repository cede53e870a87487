"""Walk-the-book fill estimation for hypothetical market and limit orders.

Time-to-fill figures are heuristics, not a queue-position model: market
orders take ``min(2 * quantity, 30)`` seconds (1 s for a single unit) and
resting limit orders step with their distance from the touch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from core.models import (
    BookSnapshot,
    ExecutionType,
    FillMetrics,
    Level,
    MarketImpact,
    OrderSide,
    OrderType,
    SimulatedOrder,
)

HIGH_IMPACT_SLIPPAGE = 0.5
MEDIUM_IMPACT_SLIPPAGE = 0.2
MAX_MARKET_TIME_TO_FILL = 30.0

# (upper bound on price distance %, seconds)
PENDING_TIME_STEPS = ((0.1, 10.0), (0.5, 30.0), (1.0, 120.0))
FAR_FROM_MARKET_SECONDS = 300.0


@dataclass(frozen=True, slots=True)
class WalkResult:
    filled_quantity: float
    avg_price: float
    fill_percentage: float


def walk_book(levels: Sequence[Level], target_quantity: float) -> WalkResult:
    """Consume ``levels`` best-first until ``target_quantity`` is met or depth runs out."""
    remaining = target_quantity
    cost = 0.0
    for price, size in levels:
        if remaining <= 0:
            break
        take = min(remaining, size)
        cost += price * take
        remaining -= take

    filled = target_quantity - remaining
    avg_price = cost / filled if filled else 0.0
    fill_percentage = 100.0 * filled / target_quantity if target_quantity else 0.0
    return WalkResult(filled_quantity=filled, avg_price=avg_price, fill_percentage=fill_percentage)


def slippage(expected_price: Optional[float], actual_price: Optional[float]) -> float:
    if not expected_price or not actual_price:
        return 0.0
    return abs(actual_price - expected_price) / expected_price * 100.0


def classify_impact(slippage_percent: float) -> MarketImpact:
    if slippage_percent > HIGH_IMPACT_SLIPPAGE:
        return MarketImpact.HIGH
    if slippage_percent > MEDIUM_IMPACT_SLIPPAGE:
        return MarketImpact.MEDIUM
    return MarketImpact.LOW


def market_time_to_fill(quantity: float) -> float:
    if quantity > 1:
        return min(quantity * 2, MAX_MARKET_TIME_TO_FILL)
    return 1.0


def pending_time_to_fill(price_distance_percent: Optional[float]) -> float:
    if price_distance_percent is None:
        return FAR_FROM_MARKET_SECONDS
    for bound, seconds in PENDING_TIME_STEPS:
        if price_distance_percent < bound:
            return seconds
    return FAR_FROM_MARKET_SECONDS


def opposite_side(snapshot: BookSnapshot, side: OrderSide) -> Sequence[Level]:
    return snapshot.asks if side == OrderSide.BUY else snapshot.bids


def _taker_metrics(
    order: SimulatedOrder,
    snapshot: BookSnapshot,
    reference_price: Optional[float],
) -> FillMetrics:
    walk = walk_book(opposite_side(snapshot, order.side), order.quantity)
    if walk.filled_quantity > 0:
        slip = slippage(reference_price, walk.avg_price)
        time_to_fill = market_time_to_fill(order.quantity)
    else:
        slip = 0.0
        time_to_fill = 0.0
    return FillMetrics(
        filled_quantity=walk.filled_quantity,
        fill_percentage=walk.fill_percentage,
        avg_price=walk.avg_price,
        slippage_percent=slip,
        market_impact=classify_impact(slip),
        time_to_fill_seconds=time_to_fill,
        execution_type=ExecutionType.IMMEDIATE,
        order_type=order.kind,
    )


def simulate_market(order: SimulatedOrder, snapshot: BookSnapshot) -> FillMetrics:
    return _taker_metrics(order, snapshot, snapshot.last_price)


def simulate_limit(order: SimulatedOrder, snapshot: BookSnapshot) -> FillMetrics:
    levels = opposite_side(snapshot, order.side)
    best_opposite = levels[0][0] if levels else None
    limit_price = order.price or 0.0

    if best_opposite is not None:
        crosses = (
            limit_price >= best_opposite
            if order.side == OrderSide.BUY
            else limit_price <= best_opposite
        )
        if crosses:
            return _taker_metrics(order, snapshot, limit_price)

    distance = None
    if best_opposite:
        distance = abs(limit_price - best_opposite) / best_opposite * 100.0
    return FillMetrics(
        filled_quantity=0.0,
        fill_percentage=0.0,
        avg_price=limit_price,
        slippage_percent=0.0,
        market_impact=MarketImpact.LOW,
        time_to_fill_seconds=pending_time_to_fill(distance),
        execution_type=ExecutionType.PENDING,
        order_type=OrderType.LIMIT,
        price_distance_percent=distance,
    )


def simulate(order: SimulatedOrder, snapshot: BookSnapshot) -> FillMetrics:
    if order.kind == OrderType.LIMIT:
        return simulate_limit(order, snapshot)
    return simulate_market(order, snapshot)
