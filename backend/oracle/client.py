from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from updown.core.config import Settings
from updown.domain.models import PriceQuote
from updown.errors import OracleUnavailable

from .normalize import normalize_quote


class PriceOracleClient:
    """Thin wrapper around an HTTP price oracle endpoint."""

    def __init__(
        self,
        *,
        base_url: str,
        price_path: str = "/prices/{asset_id}",
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.price_path = price_path
        self.timeout = timeout
        client_kwargs: dict[str, Any] = {"base_url": base_url, "timeout": timeout}
        if transport is not None:
            client_kwargs["transport"] = transport
        self.client = httpx.Client(**client_kwargs)

    @classmethod
    def from_settings(
        cls, settings: Settings, *, transport: httpx.BaseTransport | None = None
    ) -> "PriceOracleClient":
        return cls(
            base_url=str(settings.oracle_base_url),
            price_path=settings.oracle_price_path,
            timeout=settings.oracle_timeout_seconds,
            transport=transport,
        )

    def fetch_quote(self, asset_id: str, at_or_before: int) -> dict[str, Any]:
        path = self.price_path.format(asset_id=asset_id)
        params = {"at_or_before": at_or_before}
        logger.debug("Oracle GET {} params={}", path, params)
        response = self.client.get(path, params=params)
        response.raise_for_status()
        return response.json()

    def get_price(self, asset_id: str, at_or_before: int) -> PriceQuote:
        try:
            payload = self.fetch_quote(asset_id, at_or_before)
        except httpx.HTTPStatusError as exc:
            raise OracleUnavailable(
                f"Oracle returned HTTP {exc.response.status_code} for {asset_id}"
            ) from exc
        except httpx.HTTPError as exc:
            raise OracleUnavailable(f"Oracle request failed: {exc}") from exc
        except ValueError as exc:
            raise OracleUnavailable("Oracle returned a non-JSON body") from exc

        quote = normalize_quote(payload)
        if quote is None:
            raise OracleUnavailable(f"Oracle has no price for {asset_id} at {at_or_before}")
        return quote

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "PriceOracleClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
