from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class Venue(str, Enum):
    OKX = "OKX"
    BYBIT = "Bybit"
    DERIBIT = "Deribit"

    @classmethod
    def parse(cls, value: "Venue | str") -> Optional["Venue"]:
        if isinstance(value, Venue):
            return value
        text = str(value).strip().lower()
        for venue in cls:
            if venue.value.lower() == text:
                return venue
        return None


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderType(str, Enum):
    LIMIT = "LIMIT"
    MARKET = "MARKET"


class ExecutionType(str, Enum):
    IMMEDIATE = "IMMEDIATE"
    PENDING = "PENDING"


class MarketImpact(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ConnectionStatus(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    DEGRADED = "DEGRADED"
    CLOSED = "CLOSED"


class ControlSignal(str, Enum):
    PONG = "PONG"
    SUBSCRIBED = "SUBSCRIBED"


Level = Tuple[float, float]


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class BookSnapshot:
    bids: Tuple[Level, ...] = ()
    asks: Tuple[Level, ...] = ()
    last_price: float = 0.0
    timestamp: int = 0

    @property
    def best_bid(self) -> Optional[float]:
        return self.bids[0][0] if self.bids else None

    @property
    def best_ask(self) -> Optional[float]:
        return self.asks[0][0] if self.asks else None


@dataclass(frozen=True, slots=True)
class ConnectionState:
    status: ConnectionStatus
    reason: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.status == ConnectionStatus.OPEN

    @property
    def is_fallback(self) -> bool:
        return self.status == ConnectionStatus.DEGRADED


@dataclass(frozen=True, slots=True)
class SimulatedOrder:
    venue: Venue
    symbol: str
    kind: OrderType
    side: OrderSide
    quantity: float
    price: Optional[float] = None
    requested_at: int = field(default_factory=now_ms)

    def __post_init__(self) -> None:
        from models.validators import validate_simulated_order

        validate_simulated_order(self)


@dataclass(frozen=True, slots=True)
class FillMetrics:
    filled_quantity: float
    fill_percentage: float
    avg_price: float
    slippage_percent: float
    market_impact: MarketImpact
    time_to_fill_seconds: float
    execution_type: ExecutionType
    order_type: OrderType
    price_distance_percent: Optional[float] = None
