from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from core.fill_simulation import HIGH_IMPACT_SLIPPAGE, MEDIUM_IMPACT_SLIPPAGE, simulate_market
from core.models import BookSnapshot, OrderType, SimulatedOrder

IMBALANCE_DEPTH = 10


class ImbalanceType(str, Enum):
    BALANCED = "Balanced"
    BUY_PRESSURE = "Buy Pressure"
    SELL_PRESSURE = "Sell Pressure"


class ImbalanceStrength(str, Enum):
    NEUTRAL = "Neutral"
    MODERATE = "Moderate"
    STRONG = "Strong"


class WarningLevel(str, Enum):
    MODERATE = "MODERATE"
    HIGH = "HIGH"


@dataclass(frozen=True, slots=True)
class BookImbalance:
    bid_volume: float
    ask_volume: float
    bid_percentage: float
    ask_percentage: float
    ratio: float
    imbalance_type: ImbalanceType
    strength: ImbalanceStrength


@dataclass(frozen=True, slots=True)
class DepthPoint:
    price: float
    bid_volume: Optional[float] = None
    ask_volume: Optional[float] = None


@dataclass(frozen=True, slots=True)
class SlippageWarning:
    level: WarningLevel
    slippage_percent: float
    message: str


class BookAnalyzer:
    """Read-only analytics over a canonical snapshot."""

    def __init__(self, depth: int = IMBALANCE_DEPTH):
        self.depth = depth

    def imbalance(self, snapshot: Optional[BookSnapshot]) -> Optional[BookImbalance]:
        if snapshot is None:
            return None
        bid_volume = sum(size for _, size in snapshot.bids[: self.depth])
        ask_volume = sum(size for _, size in snapshot.asks[: self.depth])
        total = bid_volume + ask_volume
        if total == 0:
            return None

        if ask_volume > 0:
            ratio = bid_volume / ask_volume
        else:
            ratio = 999.0 if bid_volume > 0 else 1.0

        imbalance_type = ImbalanceType.BALANCED
        strength = ImbalanceStrength.NEUTRAL
        if ratio > 1.5:
            imbalance_type = ImbalanceType.BUY_PRESSURE
            strength = ImbalanceStrength.STRONG if ratio > 2 else ImbalanceStrength.MODERATE
        elif ratio < 0.67:
            imbalance_type = ImbalanceType.SELL_PRESSURE
            strength = ImbalanceStrength.STRONG if ratio < 0.5 else ImbalanceStrength.MODERATE

        return BookImbalance(
            bid_volume=bid_volume,
            ask_volume=ask_volume,
            bid_percentage=bid_volume / total * 100.0,
            ask_percentage=ask_volume / total * 100.0,
            ratio=ratio,
            imbalance_type=imbalance_type,
            strength=strength,
        )

    @staticmethod
    def depth_curve(snapshot: Optional[BookSnapshot]) -> List[DepthPoint]:
        """Cumulative volume walking out from the touch on each side, sorted by price."""
        if snapshot is None:
            return []
        points: List[DepthPoint] = []
        cumulative = 0.0
        for price, size in snapshot.bids:
            cumulative += size
            points.append(DepthPoint(price=price, bid_volume=cumulative))
        cumulative = 0.0
        for price, size in snapshot.asks:
            cumulative += size
            points.append(DepthPoint(price=price, ask_volume=cumulative))
        points.sort(key=lambda point: point.price)
        return points

    @staticmethod
    def slippage_warning(
        order: Optional[SimulatedOrder],
        snapshot: Optional[BookSnapshot],
    ) -> Optional[SlippageWarning]:
        if order is None or snapshot is None or order.kind != OrderType.MARKET:
            return None
        metrics = simulate_market(order, snapshot)
        if metrics.filled_quantity <= 0:
            return None
        slip = metrics.slippage_percent
        if slip > HIGH_IMPACT_SLIPPAGE:
            return SlippageWarning(
                WarningLevel.HIGH,
                slip,
                "HIGH SLIPPAGE WARNING: This order may cause significant market impact!",
            )
        if slip > MEDIUM_IMPACT_SLIPPAGE:
            return SlippageWarning(
                WarningLevel.MODERATE,
                slip,
                "MODERATE SLIPPAGE: Consider splitting this order into smaller sizes.",
            )
        return None
