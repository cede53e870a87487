from __future__ import annotations

from typing import Optional


def format_price(price: Optional[float]) -> Optional[str]:
    if not price:
        return None
    return f"{price:.2f}"


def format_quantity(quantity: Optional[float]) -> Optional[str]:
    if not quantity:
        return None
    return f"{quantity:.4f}"


def format_percentage(value: Optional[float]) -> Optional[str]:
    if not value:
        return None
    return f"{value:.2f}%"


def format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:g}s"
    return f"{round(seconds / 60)}m"
