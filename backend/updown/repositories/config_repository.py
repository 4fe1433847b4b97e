"""Singleton configuration and treasury rows."""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from updown.models import SINGLETON_ID, GameConfig, TreasuryBalance, Transfer, utcnow


class ConfigRepository:
    """Read and write the process-wide game configuration."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_config(self) -> GameConfig | None:
        return self._session.get(GameConfig, SINGLETON_ID)

    def create_config(self, values: dict[str, Any]) -> GameConfig:
        record = GameConfig(config_id=SINGLETON_ID, **values)
        record.updated_at = utcnow()
        self._session.add(record)
        self._session.flush()
        return record

    def apply_changes(self, record: GameConfig, changes: dict[str, Any]) -> GameConfig:
        for key, value in changes.items():
            setattr(record, key, value)
        record.updated_at = utcnow()
        self._session.flush()
        return record

    # ------------------------------------------------------------------
    # Treasury

    def get_treasury(self) -> TreasuryBalance:
        record = self._session.get(TreasuryBalance, SINGLETON_ID)
        if record is None:
            record = TreasuryBalance(
                treasury_id=SINGLETON_ID,
                balance=0,
                total_collected=0,
                total_withdrawn=0,
            )
            self._session.add(record)
            self._session.flush()
        return record

    # ------------------------------------------------------------------
    # Transfers

    def record_transfer(
        self,
        *,
        to_address: str,
        amount: int,
        reason: str,
        epoch: int | None,
    ) -> Transfer:
        record = Transfer(to_address=to_address, amount=amount, reason=reason, epoch=epoch)
        self._session.add(record)
        self._session.flush()
        return record

    def list_transfers(self, *, to_address: str | None = None) -> list[Transfer]:
        query = self._session.query(Transfer)
        if to_address:
            query = query.filter(Transfer.to_address == to_address)
        return list(query.order_by(Transfer.transfer_id.asc()).all())
