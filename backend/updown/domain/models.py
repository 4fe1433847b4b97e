"""Typed domain values shared by the ledgers, settlement and adapters."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

MAX_AMOUNT = 2**63 - 1
BPS_DENOMINATOR = 10_000


class Side(str, Enum):
    UP = "up"
    DOWN = "down"


class RoundState(str, Enum):
    CREATED = "created"
    LOCKED = "locked"
    CLOSED = "closed"


class Outcome(str, Enum):
    UP = "up"
    DOWN = "down"
    REFUND = "refund"


class RefundReason(str, Enum):
    ONE_SIDED_POOL = "one_sided_pool"
    TIE = "tie"
    LOCK_ORACLE_UNAVAILABLE = "lock_oracle_unavailable"
    CLOSE_ORACLE_UNAVAILABLE = "close_oracle_unavailable"


class TransferReason(str, Enum):
    CLAIM = "claim"
    TREASURY_WITHDRAWAL = "treasury_withdrawal"


@dataclass(slots=True, frozen=True)
class PriceQuote:
    """Latest known price at or before a requested timestamp."""

    price: Decimal
    timestamp: int


@dataclass(slots=True, frozen=True)
class RoundTotals:
    """Aggregate stakes and prices settlement needs from a round."""

    total_up_amount: int
    total_down_amount: int
    lock_price: Decimal | None
    close_price: Decimal | None
    fee_bps: int


@dataclass(slots=True, frozen=True)
class SettlementBreakdown:
    """Result of settling a round: who won and how the pool is split."""

    outcome: Outcome
    refund_reason: RefundReason | None
    pool: int
    fee: int
    distributable: int
    winning_total: int

    @property
    def is_refund(self) -> bool:
        return self.outcome is Outcome.REFUND
