from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    TypeDecorator,
)
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base
from .domain.models import RoundState

SINGLETON_ID = 1


class DecimalString(TypeDecorator):
    """Stores ``Decimal`` values as plain text so every digit survives a reload."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return format(Decimal(str(value)), "f")

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameConfig(Base):
    __tablename__ = "game_config"

    config_id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SINGLETON_ID)
    round_interval_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    bid_buffer_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    min_bet_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    fee_bps: Mapped[int] = mapped_column(Integer, nullable=False)
    treasury_address: Mapped[str] = mapped_column(String, nullable=False)
    oracle_address: Mapped[str] = mapped_column(String, nullable=False)
    asset_id: Mapped[str] = mapped_column(String, nullable=False)
    admins: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    def is_admin(self, address: str | None) -> bool:
        return bool(address) and address in (self.admins or [])


class Round(Base):
    __tablename__ = "rounds"

    epoch: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    open_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    lock_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    close_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    state: Mapped[str] = mapped_column(String, nullable=False, default=RoundState.CREATED.value, index=True)
    asset_id: Mapped[str] = mapped_column(String, nullable=False)
    fee_bps: Mapped[int] = mapped_column(Integer, nullable=False)

    lock_price: Mapped[Decimal | None] = mapped_column(DecimalString(64), nullable=True)
    lock_oracle_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    close_price: Mapped[Decimal | None] = mapped_column(DecimalString(64), nullable=True)
    close_oracle_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    total_up_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_down_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    up_bets_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    down_bets_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    outcome: Mapped[str | None] = mapped_column(String, nullable=True)
    refund_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    fee_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    distributable_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    locked_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    closed_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    @property
    def total_amount(self) -> int:
        return self.total_up_amount + self.total_down_amount


class Bet(Base):
    __tablename__ = "bets"

    epoch: Mapped[int] = mapped_column(BigInteger, ForeignKey("rounds.epoch"), primary_key=True)
    participant: Mapped[str] = mapped_column(String, primary_key=True)
    side: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    placed_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    claimed_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    claimed_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)


class TreasuryBalance(Base):
    __tablename__ = "treasury"

    treasury_id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SINGLETON_ID)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_collected: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_withdrawn: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class Transfer(Base):
    __tablename__ = "transfers"

    transfer_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    to_address: Mapped[str] = mapped_column(String, nullable=False, index=True)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reason: Mapped[str] = mapped_column(String, nullable=False)
    epoch: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
