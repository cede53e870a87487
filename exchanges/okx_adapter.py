from __future__ import annotations

from typing import Any, Dict, Optional

from core.models import BookSnapshot, ControlSignal, Venue
from exchanges.base_adapter import VenueAdapter, split_symbol


class OKXAdapter(VenueAdapter):
    """OKX v5 public ``books`` channel."""

    venue = Venue.OKX
    url = "wss://ws.okx.com:8443/ws/v5/public"

    def format_symbol(self, symbol: str) -> Optional[str]:
        parts = split_symbol(symbol)
        if not parts:
            return None
        base, quote = parts
        return f"{base}-{quote}T"

    def build_subscription(self, symbol: str) -> Optional[Dict[str, Any]]:
        inst_id = self.format_symbol(symbol)
        if not inst_id:
            return None
        return {"op": "subscribe", "args": [{"channel": "books", "instId": inst_id}]}

    def _control_signal(self, data: Dict[str, Any]) -> Optional[ControlSignal]:
        event = data.get("event")
        if event == "subscribe":
            return ControlSignal.SUBSCRIBED
        if event == "error":
            self.logger.warn("okx rejected request", code=data.get("code"), msg=data.get("msg"))
        return super()._control_signal(data)

    def _parse_book(self, data: Dict[str, Any]) -> Optional[BookSnapshot]:
        books = data.get("data")
        if not books:
            return None
        book = books[0]
        return self.orderbooks.build(
            bids=book.get("bids", []),
            asks=book.get("asks", []),
            timestamp=int(book["ts"]) if book.get("ts") else None,
        )
