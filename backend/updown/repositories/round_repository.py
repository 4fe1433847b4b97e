"""Round persistence helpers."""

from __future__ import annotations

from sqlalchemy import asc, desc, func, select
from sqlalchemy.orm import Session

from updown.domain.models import RoundState
from updown.models import Round


class RoundRepository:
    """Epoch-keyed storage for round records."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mutations

    def add_round(
        self,
        *,
        epoch: int,
        open_time: int,
        interval_seconds: int,
        fee_bps: int,
        asset_id: str,
    ) -> Round:
        lock_time = open_time + interval_seconds
        record = Round(
            epoch=epoch,
            open_time=open_time,
            lock_time=lock_time,
            close_time=lock_time + interval_seconds,
            state=RoundState.CREATED.value,
            fee_bps=fee_bps,
            asset_id=asset_id,
            total_up_amount=0,
            total_down_amount=0,
            up_bets_count=0,
            down_bets_count=0,
        )
        self._session.add(record)
        self._session.flush()
        return record

    # ------------------------------------------------------------------
    # Queries

    def get_round(self, epoch: int) -> Round | None:
        return self._session.get(Round, epoch)

    def get_latest_round(self) -> Round | None:
        query = select(Round).order_by(desc(Round.epoch)).limit(1)
        return self._session.execute(query).scalars().first()

    def get_round_in_state(self, state: RoundState, *, oldest: bool = True) -> Round | None:
        direction = asc if oldest else desc
        query = (
            select(Round)
            .where(Round.state == state.value)
            .order_by(direction(Round.epoch))
            .limit(1)
        )
        return self._session.execute(query).scalars().first()

    def list_rounds(
        self,
        *,
        state: RoundState | None = None,
        order: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Round], int]:
        filters = []
        if state is not None:
            filters.append(Round.state == state.value)

        sort_direction = asc if order.lower() == "asc" else desc
        query = (
            select(Round)
            .where(*filters)
            .order_by(sort_direction(Round.epoch))
            .limit(limit)
            .offset(offset)
        )
        total_query = select(func.count(Round.epoch)).where(*filters)

        rounds = list(self._session.execute(query).scalars().all())
        total = self._session.execute(total_query).scalar_one()
        return rounds, total
