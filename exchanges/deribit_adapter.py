from __future__ import annotations

from typing import Any, Dict, Optional

from core.models import BookSnapshot, Venue
from exchanges.base_adapter import VenueAdapter, split_symbol


class DeribitAdapter(VenueAdapter):
    """Deribit JSON-RPC grouped ``book`` channel on perpetuals."""

    venue = Venue.DERIBIT
    url = "wss://www.deribit.com/ws/api/v2"

    def format_symbol(self, symbol: str) -> Optional[str]:
        parts = split_symbol(symbol)
        if not parts:
            return None
        base, _quote = parts
        return f"{base}-PERPETUAL"

    def build_subscription(self, symbol: str) -> Optional[Dict[str, Any]]:
        instrument = self.format_symbol(symbol)
        if not instrument:
            return None
        return {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "public/subscribe",
            "params": {"channels": [f"book.{instrument}.none.20.100ms"]},
        }

    def _parse_book(self, data: Dict[str, Any]) -> Optional[BookSnapshot]:
        params = data.get("params") or {}
        book = params.get("data")
        if not book:
            return None
        return self.orderbooks.build(
            bids=book.get("bids") or [],
            asks=book.get("asks") or [],
            timestamp=book.get("timestamp"),
        )
