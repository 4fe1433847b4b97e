"""Protocol fee accounting."""

from __future__ import annotations

from loguru import logger
from sqlalchemy.orm import Session

from updown.errors import InsufficientTreasuryBalance, NothingToWithdraw
from updown.models import TreasuryBalance
from updown.repositories import ConfigRepository

from .settlement import checked_add


class Treasury:
    """Accrues fees from decided rounds and releases them on withdrawal."""

    def __init__(self, session: Session) -> None:
        self._repo = ConfigRepository(session)

    def balance(self) -> TreasuryBalance:
        return self._repo.get_treasury()

    def credit(self, amount: int, *, epoch: int) -> TreasuryBalance:
        record = self._repo.get_treasury()
        if amount <= 0:
            return record
        record.balance = checked_add(record.balance, amount)
        record.total_collected = checked_add(record.total_collected, amount)
        logger.info("Treasury credited {} from round {}", amount, epoch)
        return record

    def debit(self, amount: int | None = None) -> int:
        """Remove ``amount`` (default: the full balance) and return it."""

        record = self._repo.get_treasury()
        requested = record.balance if amount is None else amount
        if requested <= 0:
            raise NothingToWithdraw()
        if requested > record.balance:
            raise InsufficientTreasuryBalance(
                f"Requested {requested}, available {record.balance}"
            )
        record.balance -= requested
        record.total_withdrawn = checked_add(record.total_withdrawn, requested)
        return requested
