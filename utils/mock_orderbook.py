from __future__ import annotations

import random
from typing import Dict, Optional, Tuple

from core.models import BookSnapshot, Venue, now_ms
from models.validators import validate_snapshot

BASE_PRICE_BANDS: Dict[Optional[Venue], Tuple[float, float]] = {
    Venue.OKX: (41000.0, 1000.0),
    Venue.BYBIT: (42000.0, 1000.0),
    Venue.DERIBIT: (43900.0, 1000.0),
    None: (45000.0, 1000.0),
}


class MockBookGenerator:
    """Synthetic order books served while no live feed is available."""

    def __init__(
        self,
        venue: Venue | None = None,
        levels: int = 15,
        seed: int | None = None,
        max_step: float = 50.0,
    ):
        self.venue = venue
        self.levels = levels
        self.max_step = max_step
        self._rng = random.Random(seed)

    def base_price(self) -> float:
        floor, width = BASE_PRICE_BANDS.get(self.venue, BASE_PRICE_BANDS[None])
        return floor + self._rng.random() * width

    def generate(self) -> BookSnapshot:
        base = self.base_price()
        bids = []
        asks = []
        bid_price = base
        ask_price = base
        for _ in range(self.levels):
            # steps are strictly positive so each side stays strictly monotonic
            bid_price -= self._step()
            ask_price += self._step()
            if bid_price <= 0:
                break
            bids.append((round(bid_price, 2), self._quantity()))
            asks.append((round(ask_price, 2), self._quantity()))
        bids.sort(key=lambda level: level[0], reverse=True)
        asks.sort(key=lambda level: level[0])
        snapshot = BookSnapshot(
            bids=tuple(bids),
            asks=tuple(asks),
            last_price=base,
            timestamp=now_ms(),
        )
        validate_snapshot(snapshot)
        return snapshot

    def _step(self) -> float:
        return 0.05 + self._rng.random() * self.max_step

    def _quantity(self) -> float:
        return 1.0 + self._rng.random() * 5.0
