from __future__ import annotations

from typing import Any, Dict, Optional

from core.models import BookSnapshot, ControlSignal, Venue
from exchanges.base_adapter import VenueAdapter, split_symbol


class BybitAdapter(VenueAdapter):
    """Bybit v5 linear ``orderbook.50`` topic; needs an application-level ping."""

    venue = Venue.BYBIT
    url = "wss://stream.bybit.com/v5/public/linear"
    keepalive_payload = {"op": "ping"}

    def format_symbol(self, symbol: str) -> Optional[str]:
        parts = split_symbol(symbol)
        if not parts:
            return None
        base, quote = parts
        return f"{base}{quote}T"

    def build_subscription(self, symbol: str) -> Optional[Dict[str, Any]]:
        topic_symbol = self.format_symbol(symbol)
        if not topic_symbol:
            return None
        return {"op": "subscribe", "args": [f"orderbook.50.{topic_symbol}"]}

    def _control_signal(self, data: Dict[str, Any]) -> Optional[ControlSignal]:
        if data.get("ret_msg") == "pong":
            return ControlSignal.PONG
        return super()._control_signal(data)

    def _parse_book(self, data: Dict[str, Any]) -> Optional[BookSnapshot]:
        book = data.get("data")
        if not book:
            return None
        return self.orderbooks.build(
            bids=book.get("b") or [],
            asks=book.get("a") or [],
            timestamp=int(data["ts"]) if data.get("ts") else None,
        )
