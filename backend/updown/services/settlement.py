"""Pure settlement math for closed rounds.

Nothing here touches storage or collaborators: every function is a
deterministic function of the round aggregates and a single bet. All
divisions floor; the rounding remainder ("dust") stays in the pool and is
never redistributed, so the sum of winning claims never exceeds
``pool - fee``.
"""

from __future__ import annotations

from updown.domain.models import (
    BPS_DENOMINATOR,
    MAX_AMOUNT,
    Outcome,
    RefundReason,
    RoundTotals,
    SettlementBreakdown,
    Side,
)
from updown.errors import ArithmeticOverflow, InvalidConfig


def checked_add(left: int, right: int) -> int:
    """Add two amounts, failing closed instead of leaving the stored range."""

    if left < 0 or right < 0:
        raise ArithmeticOverflow("Amounts must be non-negative")
    result = left + right
    if result > MAX_AMOUNT:
        raise ArithmeticOverflow()
    return result


def compute_fee(pool: int, fee_bps: int) -> int:
    if not 0 <= fee_bps <= BPS_DENOMINATOR:
        raise InvalidConfig(f"fee_bps must be within 0..{BPS_DENOMINATOR}, got {fee_bps}")
    return pool * fee_bps // BPS_DENOMINATOR


def determine_outcome(totals: RoundTotals) -> tuple[Outcome, RefundReason | None]:
    """Decide the winning side, or why the round voids."""

    if totals.lock_price is None:
        return Outcome.REFUND, RefundReason.LOCK_ORACLE_UNAVAILABLE
    if totals.close_price is None:
        return Outcome.REFUND, RefundReason.CLOSE_ORACLE_UNAVAILABLE
    if totals.total_up_amount == 0 or totals.total_down_amount == 0:
        return Outcome.REFUND, RefundReason.ONE_SIDED_POOL
    if totals.close_price > totals.lock_price:
        return Outcome.UP, None
    if totals.close_price < totals.lock_price:
        return Outcome.DOWN, None
    return Outcome.REFUND, RefundReason.TIE


def refund_breakdown(totals: RoundTotals, reason: RefundReason) -> SettlementBreakdown:
    pool = checked_add(totals.total_up_amount, totals.total_down_amount)
    return SettlementBreakdown(
        outcome=Outcome.REFUND,
        refund_reason=reason,
        pool=pool,
        fee=0,
        distributable=pool,
        winning_total=0,
    )


def settle(totals: RoundTotals) -> SettlementBreakdown:
    """Compute outcome, fee and distributable amount for a round."""

    outcome, reason = determine_outcome(totals)
    if outcome is Outcome.REFUND:
        return refund_breakdown(totals, reason)

    pool = checked_add(totals.total_up_amount, totals.total_down_amount)
    fee = compute_fee(pool, totals.fee_bps)
    winning_total = (
        totals.total_up_amount if outcome is Outcome.UP else totals.total_down_amount
    )
    return SettlementBreakdown(
        outcome=outcome,
        refund_reason=None,
        pool=pool,
        fee=fee,
        distributable=pool - fee,
        winning_total=winning_total,
    )


def is_winning_side(side: Side, outcome: Outcome) -> bool:
    return outcome.value == side.value


def claimable_amount(breakdown: SettlementBreakdown, side: Side, amount: int) -> int:
    """Amount a single bet may claim once the round is settled."""

    if breakdown.is_refund:
        return amount
    if not is_winning_side(side, breakdown.outcome):
        return 0
    # A decided outcome implies stakes on both sides, so winning_total > 0.
    return amount * breakdown.distributable // breakdown.winning_total
