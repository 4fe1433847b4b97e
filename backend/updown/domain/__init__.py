"""Domain values and collaborator interfaces for the round engine."""

from .models import (
    BPS_DENOMINATOR,
    MAX_AMOUNT,
    Outcome,
    PriceQuote,
    RefundReason,
    RoundState,
    RoundTotals,
    SettlementBreakdown,
    Side,
    TransferReason,
)
from .ports import Clock, Custody, PriceOracle, SystemClock

__all__ = [
    "BPS_DENOMINATOR",
    "MAX_AMOUNT",
    "Clock",
    "Custody",
    "Outcome",
    "PriceOracle",
    "PriceQuote",
    "RefundReason",
    "RoundState",
    "RoundTotals",
    "SettlementBreakdown",
    "Side",
    "SystemClock",
    "TransferReason",
]
