from __future__ import annotations

from typing import Dict, Optional, Type

from core.errors import UnsupportedVenueError
from core.models import Venue
from exchanges.base_adapter import VenueAdapter
from exchanges.bybit_adapter import BybitAdapter
from exchanges.deribit_adapter import DeribitAdapter
from exchanges.okx_adapter import OKXAdapter
from utils.logger import FeedLogger

ADAPTERS: Dict[Venue, Type[VenueAdapter]] = {
    Venue.OKX: OKXAdapter,
    Venue.BYBIT: BybitAdapter,
    Venue.DERIBIT: DeribitAdapter,
}


def get_adapter(
    venue: Venue | str,
    max_levels: int = 15,
    logger: FeedLogger | None = None,
) -> VenueAdapter:
    resolved: Optional[Venue] = Venue.parse(venue)
    adapter_cls = ADAPTERS.get(resolved) if resolved else None
    if adapter_cls is None:
        name = venue.value if isinstance(venue, Venue) else str(venue)
        raise UnsupportedVenueError(f"Unsupported venue: {name}")
    return adapter_cls(max_levels=max_levels, logger=logger)
