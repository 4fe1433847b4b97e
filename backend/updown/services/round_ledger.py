"""Round lifecycle: creation, lock and close transitions."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.orm import Session

from updown.domain.models import (
    Outcome,
    PriceQuote,
    RefundReason,
    RoundState,
    RoundTotals,
    SettlementBreakdown,
)
from updown.domain.ports import Clock, PriceOracle
from updown.errors import (
    AlreadyInitialized,
    AlreadyLocked,
    NotInitialized,
    NotLocked,
    OracleUnavailable,
    RoundAlreadyActive,
    RoundNotFound,
    TooEarly,
)
from updown.models import GameConfig, Round
from updown.repositories import RoundRepository

from . import settlement

GENESIS_EPOCH = 1


@dataclass(slots=True)
class LockResult:
    locked: Round
    started: Round

    @property
    def oracle_failed(self) -> bool:
        return self.locked.lock_price is None


@dataclass(slots=True)
class CloseResult:
    round: Round
    breakdown: SettlementBreakdown


def round_totals(record: Round) -> RoundTotals:
    return RoundTotals(
        total_up_amount=record.total_up_amount,
        total_down_amount=record.total_down_amount,
        lock_price=record.lock_price,
        close_price=record.close_price,
        fee_bps=record.fee_bps,
    )


def stored_breakdown(record: Round) -> SettlementBreakdown:
    """Rebuild the settlement of a closed round from its persisted fields."""

    pool = record.total_amount
    outcome = Outcome(record.outcome)
    if outcome is Outcome.REFUND:
        reason = RefundReason(record.refund_reason) if record.refund_reason else None
        return SettlementBreakdown(
            outcome=outcome,
            refund_reason=reason,
            pool=pool,
            fee=0,
            distributable=pool,
            winning_total=0,
        )
    winning_total = (
        record.total_up_amount if outcome is Outcome.UP else record.total_down_amount
    )
    return SettlementBreakdown(
        outcome=outcome,
        refund_reason=None,
        pool=pool,
        fee=record.fee_amount or 0,
        distributable=record.distributable_amount or 0,
        winning_total=winning_total,
    )


class RoundLedger:
    """State machine over epoch-keyed rounds.

    Every transition is gated only on recorded state and the clock, so any
    account may drive it and redundant calls are rejected rather than
    repeated.
    """

    def __init__(
        self,
        session: Session,
        *,
        clock: Clock,
        oracle: PriceOracle,
        max_staleness_seconds: int | None = None,
    ) -> None:
        self._repo = RoundRepository(session)
        self._clock = clock
        self._oracle = oracle
        self._max_staleness = max_staleness_seconds

    # ------------------------------------------------------------------
    # Transitions

    def genesis(self, config: GameConfig) -> Round:
        if self._repo.get_latest_round() is not None:
            raise AlreadyInitialized()
        record = self._start_round(config, epoch=GENESIS_EPOCH)
        logger.info(
            "Genesis round {} opened: lock_time={}, close_time={}",
            record.epoch,
            record.lock_time,
            record.close_time,
        )
        return record

    def start_next(self, config: GameConfig) -> Round:
        latest = self._repo.get_latest_round()
        if latest is None:
            raise NotInitialized("Call genesis before starting rounds")
        if latest.state == RoundState.CREATED.value:
            raise RoundAlreadyActive()
        return self._start_round(config, epoch=latest.epoch + 1)

    def lock(self, config: GameConfig, epoch: int | None = None) -> LockResult:
        record = self._lock_target(epoch)
        now = self._clock.now()
        if now < record.lock_time:
            raise TooEarly(
                f"Round {record.epoch} locks at {record.lock_time}, now is {now}"
            )

        quote = self._capture_price(record.asset_id, record.lock_time)
        if quote is None:
            record.refund_reason = RefundReason.LOCK_ORACLE_UNAVAILABLE.value
            logger.warning(
                "Round {} locked without a price; it will be refunded at close",
                record.epoch,
            )
        else:
            record.lock_price = quote.price
            record.lock_oracle_at = quote.timestamp
        record.state = RoundState.LOCKED.value
        record.locked_at = now

        started = self.start_next(config)
        logger.info(
            "Round {} locked at price {} (up={}, down={}); round {} opened",
            record.epoch,
            record.lock_price,
            record.total_up_amount,
            record.total_down_amount,
            started.epoch,
        )
        return LockResult(locked=record, started=started)

    def close(self, epoch: int | None = None) -> CloseResult:
        record = self._close_target(epoch)
        now = self._clock.now()
        if now < record.close_time:
            raise TooEarly(
                f"Round {record.epoch} closes at {record.close_time}, now is {now}"
            )

        if record.lock_price is not None:
            quote = self._capture_price(record.asset_id, record.close_time)
            if quote is not None:
                record.close_price = quote.price
                record.close_oracle_at = quote.timestamp

        totals = round_totals(record)
        if record.lock_price is not None and record.close_price is None:
            breakdown = settlement.refund_breakdown(
                totals, RefundReason.CLOSE_ORACLE_UNAVAILABLE
            )
            logger.warning("Round {} closed without a price; refunding", record.epoch)
        else:
            breakdown = settlement.settle(totals)

        record.outcome = breakdown.outcome.value
        record.refund_reason = (
            breakdown.refund_reason.value if breakdown.refund_reason else None
        )
        record.fee_amount = breakdown.fee
        record.distributable_amount = breakdown.distributable
        record.state = RoundState.CLOSED.value
        record.closed_at = now
        logger.info(
            "Round {} closed: outcome={}, pool={}, fee={}, reason={}",
            record.epoch,
            record.outcome,
            breakdown.pool,
            breakdown.fee,
            record.refund_reason,
        )
        return CloseResult(round=record, breakdown=breakdown)

    # ------------------------------------------------------------------
    # Queries

    def get_round(self, epoch: int) -> Round:
        record = self._repo.get_round(epoch)
        if record is None:
            raise RoundNotFound(f"Round {epoch} not found")
        return record

    def get_active_round(self) -> Round | None:
        return self._repo.get_round_in_state(RoundState.CREATED, oldest=False)

    def list_rounds(self, **kwargs) -> tuple[list[Round], int]:
        return self._repo.list_rounds(**kwargs)

    # ------------------------------------------------------------------
    # Internals

    def _start_round(self, config: GameConfig, *, epoch: int) -> Round:
        return self._repo.add_round(
            epoch=epoch,
            open_time=self._clock.now(),
            interval_seconds=config.round_interval_seconds,
            fee_bps=config.fee_bps,
            asset_id=config.asset_id,
        )

    def _lock_target(self, epoch: int | None) -> Round:
        if epoch is not None:
            record = self.get_round(epoch)
            if record.state != RoundState.CREATED.value:
                raise AlreadyLocked(f"Round {epoch} is already {record.state}")
            return record

        latest = self._repo.get_latest_round()
        if latest is None:
            raise NotInitialized()
        if latest.state != RoundState.CREATED.value:
            raise AlreadyLocked(f"Round {latest.epoch} is already {latest.state}")
        return latest

    def _close_target(self, epoch: int | None) -> Round:
        if epoch is not None:
            record = self.get_round(epoch)
            if record.state != RoundState.LOCKED.value:
                raise NotLocked(f"Round {epoch} is {record.state}, not locked")
            return record

        record = self._repo.get_round_in_state(RoundState.LOCKED, oldest=True)
        if record is None:
            raise NotLocked()
        return record

    def _capture_price(self, asset_id: str, at_or_before: int) -> PriceQuote | None:
        try:
            quote = self._oracle.get_price(asset_id, at_or_before)
        except OracleUnavailable as exc:
            logger.warning(
                "Oracle unavailable for {} at {}: {}", asset_id, at_or_before, exc
            )
            return None

        if quote.timestamp > at_or_before:
            logger.warning(
                "Rejected oracle quote from {} for requested time {}",
                quote.timestamp,
                at_or_before,
            )
            return None
        if (
            self._max_staleness is not None
            and at_or_before - quote.timestamp > self._max_staleness
        ):
            logger.warning(
                "Rejected stale oracle quote from {} for requested time {}",
                quote.timestamp,
                at_or_before,
            )
            return None
        return quote
