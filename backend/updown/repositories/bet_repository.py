"""Bet persistence helpers."""

from __future__ import annotations

from sqlalchemy import asc, select
from sqlalchemy.orm import Session

from updown.domain.models import Side
from updown.models import Bet


class BetRepository:
    """Storage for bets keyed by ``(epoch, participant)``."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def add_bet(
        self,
        *,
        epoch: int,
        participant: str,
        side: Side,
        amount: int,
        placed_at: int,
    ) -> Bet:
        record = Bet(
            epoch=epoch,
            participant=participant,
            side=side.value,
            amount=amount,
            placed_at=placed_at,
            claimed=False,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def get_bet(self, epoch: int, participant: str) -> Bet | None:
        return self._session.get(Bet, (epoch, participant))

    def list_bets(self, epoch: int) -> list[Bet]:
        query = select(Bet).where(Bet.epoch == epoch).order_by(asc(Bet.placed_at), asc(Bet.participant))
        return list(self._session.execute(query).scalars().all())

