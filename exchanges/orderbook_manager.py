from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence

from core.models import BookSnapshot, Level, now_ms


class OrderbookManager:
    """Normalizes raw venue levels into canonical snapshots."""

    def __init__(self, max_levels: int = 15):
        self.max_levels = max_levels

    def normalize_side(self, levels: Iterable[Sequence[object]], descending: bool) -> List[Level]:
        parsed: dict[float, float] = {}
        for level in levels or []:
            price = float(level[0])
            size = float(level[1])
            if not math.isfinite(price) or not math.isfinite(size):
                continue
            if price <= 0 or size <= 0:
                continue
            # first occurrence of a price wins
            parsed.setdefault(price, size)
        ordered = sorted(parsed.items(), key=lambda item: item[0], reverse=descending)
        return ordered[: self.max_levels]

    def build(
        self,
        bids: Iterable[Sequence[object]],
        asks: Iterable[Sequence[object]],
        timestamp: Optional[int] = None,
    ) -> BookSnapshot:
        norm_bids = self.normalize_side(bids, descending=True)
        norm_asks = self.normalize_side(asks, descending=False)
        return BookSnapshot(
            bids=tuple(norm_bids),
            asks=tuple(norm_asks),
            last_price=self.derive_last_price(norm_bids),
            timestamp=int(timestamp) if timestamp else now_ms(),
        )

    @staticmethod
    def derive_last_price(bids: Sequence[Level]) -> float:
        # best bid on every venue, never a traded price
        return bids[0][0] if bids else 0.0
