from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from updown.domain.models import PriceQuote

PRICE_KEYS = ("price", "rate", "value")
TIMESTAMP_KEYS = ("timestamp", "publish_time", "time", "updated_at")


def _first_present(payload: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def _parse_price(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        # str() keeps float payloads from leaking binary rounding into the Decimal.
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price


def _parse_timestamp(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        candidate = value.strip()
        if candidate.isdigit():
            return int(candidate)
        try:
            parsed = datetime.fromisoformat(candidate.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp())
    return None


def normalize_quote(payload: Any) -> PriceQuote | None:
    """Convert an oracle response body into a ``PriceQuote``.

    Accepts either a flat object or one nested under ``data``/``result``.
    Returns ``None`` when price or timestamp cannot be read.
    """

    if not isinstance(payload, dict):
        return None
    for wrapper in ("data", "result"):
        nested = payload.get(wrapper)
        if isinstance(nested, dict):
            payload = nested
            break

    price = _parse_price(_first_present(payload, PRICE_KEYS))
    timestamp = _parse_timestamp(_first_present(payload, TIMESTAMP_KEYS))
    if price is None or timestamp is None:
        return None
    return PriceQuote(price=price, timestamp=timestamp)
