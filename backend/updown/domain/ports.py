"""Interfaces of the collaborators the engine consumes but does not own."""

from __future__ import annotations

import time
from typing import Protocol

from .models import PriceQuote


class Clock(Protocol):
    def now(self) -> int:
        """Return the authoritative unix timestamp in seconds."""


class PriceOracle(Protocol):
    def get_price(self, asset_id: str, at_or_before: int) -> PriceQuote:
        """Return the latest price at or before ``at_or_before``.

        Raises ``OracleUnavailable`` when no usable data exists.
        """


class Custody(Protocol):
    def transfer(
        self,
        to: str,
        amount: int,
        *,
        reason: str,
        epoch: int | None = None,
    ) -> None:
        """Move ``amount`` to ``to``; raises ``TransferFailed`` on failure."""


class SystemClock:
    """Wall-clock adapter used at the process edge (API, keeper)."""

    def now(self) -> int:
        return int(time.time())
