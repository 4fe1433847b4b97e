"""Bet placement and claims."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.orm import Session

from updown.domain.models import RoundState, Side
from updown.domain.ports import Clock
from updown.errors import (
    AlreadyClaimed,
    BetNotFound,
    BetTooSmall,
    DuplicateBet,
    NothingToClaim,
    RoundNotBiddable,
    RoundNotClosed,
    RoundNotFound,
)
from updown.models import Bet, GameConfig, Round
from updown.repositories import BetRepository, RoundRepository

from . import settlement
from .round_ledger import stored_breakdown
from .settlement import checked_add


@dataclass(slots=True)
class ClaimResult:
    epoch: int
    participant: str
    amount: int
    refund: bool


def bidding_deadline(record: Round, config: GameConfig) -> int:
    """Last second (exclusive) at which a round accepts bets."""

    return record.lock_time - config.bid_buffer_seconds


class BetLedger:
    """Owns bet records; refers to rounds only by epoch."""

    def __init__(self, session: Session, *, clock: Clock) -> None:
        self._bets = BetRepository(session)
        self._rounds = RoundRepository(session)
        self._clock = clock

    def place_bet(
        self,
        config: GameConfig,
        *,
        epoch: int,
        participant: str,
        side: Side,
        amount: int,
    ) -> Bet:
        record = self._rounds.get_round(epoch)
        if record is None:
            raise RoundNotFound(f"Round {epoch} not found")

        now = self._clock.now()
        if record.state != RoundState.CREATED.value or now >= bidding_deadline(record, config):
            raise RoundNotBiddable(f"Round {epoch} stopped accepting bets")
        if amount < config.min_bet_amount:
            raise BetTooSmall(
                f"Minimum bet is {config.min_bet_amount}, got {amount}"
            )
        if self._bets.get_bet(epoch, participant) is not None:
            raise DuplicateBet(f"{participant} already bet in round {epoch}")

        new_up = record.total_up_amount
        new_down = record.total_down_amount
        if side is Side.UP:
            new_up = checked_add(new_up, amount)
        else:
            new_down = checked_add(new_down, amount)
        checked_add(new_up, new_down)

        record.total_up_amount = new_up
        record.total_down_amount = new_down
        if side is Side.UP:
            record.up_bets_count += 1
        else:
            record.down_bets_count += 1

        bet = self._bets.add_bet(
            epoch=epoch,
            participant=participant,
            side=side,
            amount=amount,
            placed_at=now,
        )
        logger.info(
            "Bet placed: round={}, participant={}, side={}, amount={}",
            epoch,
            participant,
            side.value,
            amount,
        )
        return bet

    def claim(self, *, epoch: int, participant: str) -> ClaimResult:
        record = self._rounds.get_round(epoch)
        if record is None:
            raise RoundNotFound(f"Round {epoch} not found")
        if record.state != RoundState.CLOSED.value:
            raise RoundNotClosed(f"Round {epoch} is {record.state}")

        bet = self._bets.get_bet(epoch, participant)
        if bet is None:
            raise BetNotFound(f"{participant} has no bet in round {epoch}")
        if bet.claimed:
            raise AlreadyClaimed(f"{participant} already claimed round {epoch}")

        breakdown = stored_breakdown(record)
        amount = settlement.claimable_amount(breakdown, Side(bet.side), bet.amount)
        if amount <= 0:
            raise NothingToClaim(f"{participant} lost round {epoch}")

        bet.claimed = True
        bet.claimed_at = self._clock.now()
        bet.claimed_amount = amount
        logger.info(
            "Claim recorded: round={}, participant={}, amount={}, refund={}",
            epoch,
            participant,
            amount,
            breakdown.is_refund,
        )
        return ClaimResult(
            epoch=epoch,
            participant=participant,
            amount=amount,
            refund=breakdown.is_refund,
        )

    def get_bet(self, epoch: int, participant: str) -> Bet:
        bet = self._bets.get_bet(epoch, participant)
        if bet is None:
            raise BetNotFound(f"{participant} has no bet in round {epoch}")
        return bet

    def list_bets(self, epoch: int) -> list[Bet]:
        return self._bets.list_bets(epoch)
