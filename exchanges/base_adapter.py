from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union

from core.errors import MalformedMessageError
from core.models import BookSnapshot, ControlSignal, Venue
from exchanges.orderbook_manager import OrderbookManager
from utils.logger import FeedLogger

ParseResult = Union[BookSnapshot, ControlSignal, None]


def split_symbol(symbol: str) -> tuple[str, str] | None:
    base, sep, quote = str(symbol).strip().upper().partition("-")
    if not base or not sep or not quote:
        return None
    return base, quote


class VenueAdapter(ABC):
    """Stateless translation between one venue's wire format and the canonical book."""

    venue: Venue
    url: str
    keepalive_payload: Optional[Dict[str, Any]] = None

    def __init__(self, max_levels: int = 15, logger: FeedLogger | None = None):
        self.orderbooks = OrderbookManager(max_levels)
        self.logger = logger or FeedLogger(self.__class__.__name__)

    def endpoint(self) -> str:
        return self.url

    @abstractmethod
    def format_symbol(self, symbol: str) -> Optional[str]:
        """Return the venue notation for a ``BASE-QUOTE`` symbol."""

    @abstractmethod
    def build_subscription(self, symbol: str) -> Optional[Dict[str, Any]]:
        """Return the subscribe payload, or ``None`` when the symbol is unusable."""

    @abstractmethod
    def _parse_book(self, data: Dict[str, Any]) -> Optional[BookSnapshot]:
        """Extract a snapshot from a decoded message; ``None`` if it carries no book."""

    def parse(self, raw: Union[str, bytes, Dict[str, Any]]) -> ParseResult:
        try:
            data = self._decode(raw)
            control = self._control_signal(data)
            if control is not None:
                return control
            return self._parse_book(data)
        except MalformedMessageError as exc:
            self.logger.debug("dropping malformed message", venue=self.venue.value, error=str(exc))
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as exc:
            self.logger.warn("failed to parse book message", venue=self.venue.value, error=str(exc))
        return None

    def _decode(self, raw: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
        if isinstance(raw, dict):
            return raw
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise MalformedMessageError("payload is not json", exc)
        if not isinstance(data, dict):
            raise MalformedMessageError("payload is not a json object")
        return data

    def _control_signal(self, data: Dict[str, Any]) -> Optional[ControlSignal]:
        if data.get("op") == "pong" or data.get("pong"):
            return ControlSignal.PONG
        if data.get("success") or data.get("result"):
            return ControlSignal.SUBSCRIBED
        return None
