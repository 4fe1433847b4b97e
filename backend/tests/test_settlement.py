from __future__ import annotations

from decimal import Decimal

import pytest

from updown.domain.models import MAX_AMOUNT, Outcome, RefundReason, RoundTotals, Side
from updown.errors import ArithmeticOverflow, InvalidConfig
from updown.services import settlement


def _totals(up: int, down: int, lock, close, fee_bps: int = 1500) -> RoundTotals:
    return RoundTotals(
        total_up_amount=up,
        total_down_amount=down,
        lock_price=None if lock is None else Decimal(str(lock)),
        close_price=None if close is None else Decimal(str(close)),
        fee_bps=fee_bps,
    )


def test_up_outcome_matches_reference_scenario():
    breakdown = settlement.settle(_totals(100, 50, 100, 110))

    assert breakdown.outcome is Outcome.UP
    assert breakdown.pool == 150
    assert breakdown.fee == 22
    assert breakdown.distributable == 128
    assert settlement.claimable_amount(breakdown, Side.UP, 100) == 128
    assert settlement.claimable_amount(breakdown, Side.DOWN, 50) == 0


def test_down_outcome_pays_down_side():
    breakdown = settlement.settle(_totals(100, 50, 100, 90))

    assert breakdown.outcome is Outcome.DOWN
    assert breakdown.winning_total == 50
    assert settlement.claimable_amount(breakdown, Side.DOWN, 50) == 128
    assert settlement.claimable_amount(breakdown, Side.UP, 100) == 0


@pytest.mark.parametrize(
    ("up", "down", "lock", "close", "reason"),
    [
        (100, 0, 100, 110, RefundReason.ONE_SIDED_POOL),
        (0, 100, 100, 90, RefundReason.ONE_SIDED_POOL),
        (0, 0, 100, 110, RefundReason.ONE_SIDED_POOL),
        (100, 50, 100, 100, RefundReason.TIE),
        (100, 50, None, 100, RefundReason.LOCK_ORACLE_UNAVAILABLE),
        (100, 50, 100, None, RefundReason.CLOSE_ORACLE_UNAVAILABLE),
    ],
)
def test_refund_conditions(up, down, lock, close, reason):
    breakdown = settlement.settle(_totals(up, down, lock, close))

    assert breakdown.outcome is Outcome.REFUND
    assert breakdown.refund_reason is reason
    assert breakdown.fee == 0
    assert breakdown.distributable == up + down
    assert settlement.claimable_amount(breakdown, Side.UP, 40) == 40
    assert settlement.claimable_amount(breakdown, Side.DOWN, 40) == 40


def test_winning_claims_never_exceed_distributable():
    winners = [7, 13, 29, 31, 101]
    losers_total = 997
    breakdown = settlement.settle(_totals(sum(winners), losers_total, 1, 2, fee_bps=333))

    paid = sum(settlement.claimable_amount(breakdown, Side.UP, amount) for amount in winners)
    dust = breakdown.distributable - paid

    assert breakdown.fee == (sum(winners) + losers_total) * 333 // 10_000
    assert 0 <= dust < len(winners)


def test_zero_fee_rate_distributes_whole_pool():
    breakdown = settlement.settle(_totals(60, 40, Decimal("1.5"), Decimal("1.25"), fee_bps=0))

    assert breakdown.outcome is Outcome.DOWN
    assert breakdown.fee == 0
    assert settlement.claimable_amount(breakdown, Side.DOWN, 40) == 100


def test_compute_fee_rejects_out_of_range_rate():
    with pytest.raises(InvalidConfig):
        settlement.compute_fee(100, 10_001)


def test_checked_add_fails_closed_on_overflow():
    assert settlement.checked_add(MAX_AMOUNT - 1, 1) == MAX_AMOUNT
    with pytest.raises(ArithmeticOverflow):
        settlement.checked_add(MAX_AMOUNT, 1)
