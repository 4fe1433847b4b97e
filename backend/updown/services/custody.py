"""Custody adapter that records transfer instructions alongside the ledger."""

from __future__ import annotations

from loguru import logger
from sqlalchemy.orm import Session

from updown.errors import TransferFailed
from updown.repositories import ConfigRepository


class RecordingCustody:
    """Persist each payout as a ``transfers`` row in the caller's transaction.

    A downstream settlement process reads the table and moves the funds; if
    the ledger operation rolls back, its transfer row disappears with it.
    """

    def __init__(self, session: Session) -> None:
        self._repo = ConfigRepository(session)

    def transfer(
        self,
        to: str,
        amount: int,
        *,
        reason: str,
        epoch: int | None = None,
    ) -> None:
        if not to:
            raise TransferFailed("Transfer destination is empty")
        if amount <= 0:
            raise TransferFailed(f"Transfer amount must be positive, got {amount}")
        record = self._repo.record_transfer(
            to_address=to, amount=amount, reason=reason, epoch=epoch
        )
        logger.info(
            "Transfer {} queued: to={}, amount={}, reason={}",
            record.transfer_id,
            to,
            amount,
            reason,
        )
