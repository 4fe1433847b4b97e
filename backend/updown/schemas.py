from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .domain.models import Side


class GameConfig(BaseModel):
    round_interval_seconds: int
    bid_buffer_seconds: int
    min_bet_amount: int
    fee_bps: int
    treasury_address: str
    oracle_address: str
    asset_id: str
    admins: list[str] = Field(default_factory=list)
    updated_at: datetime

    model_config = {"from_attributes": True}


class ConfigUpdate(BaseModel):
    round_interval_seconds: int | None = Field(default=None, gt=0)
    bid_buffer_seconds: int | None = Field(default=None, ge=0)
    min_bet_amount: int | None = Field(default=None, ge=1)
    fee_bps: int | None = Field(default=None, ge=0, le=10_000)
    treasury_address: str | None = None
    oracle_address: str | None = None
    asset_id: str | None = None
    admins: list[str] | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class Round(BaseModel):
    epoch: int
    open_time: int
    lock_time: int
    close_time: int
    state: str
    fee_bps: int
    asset_id: str
    lock_price: str | None = None
    lock_oracle_at: int | None = None
    close_price: str | None = None
    close_oracle_at: int | None = None
    total_up_amount: int
    total_down_amount: int
    total_amount: int
    up_bets_count: int
    down_bets_count: int
    outcome: str | None = None
    refund_reason: str | None = None
    fee_amount: int | None = None
    distributable_amount: int | None = None
    locked_at: int | None = None
    closed_at: int | None = None

    model_config = {"from_attributes": True}

    @field_validator("lock_price", "close_price", mode="before")
    @classmethod
    def _coerce_price(cls, value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, Decimal):
            return format(value.normalize(), "f")
        return str(value)


class RoundList(BaseModel):
    total: int
    items: list[Round]


class Bet(BaseModel):
    epoch: int
    participant: str
    side: str
    amount: int
    placed_at: int
    claimed: bool
    claimed_at: int | None = None
    claimed_amount: int | None = None

    model_config = {"from_attributes": True}


class BetList(BaseModel):
    total: int
    items: list[Bet]


class BetRequest(BaseModel):
    participant: str = Field(min_length=1)
    side: Side
    amount: int = Field(gt=0)
    epoch: int | None = Field(default=None, description="Defaults to the open round")


class ClaimRequest(BaseModel):
    participant: str = Field(min_length=1)


class ClaimResponse(BaseModel):
    epoch: int
    participant: str
    amount: int
    refund: bool


class LockResponse(BaseModel):
    locked: Round
    started: Round
    oracle_failed: bool


class Treasury(BaseModel):
    balance: int
    total_collected: int
    total_withdrawn: int

    model_config = {"from_attributes": True}


class TreasuryWithdrawal(BaseModel):
    amount: int | None = Field(default=None, gt=0)


class TreasuryWithdrawalResponse(BaseModel):
    withdrawn: int
    treasury: Treasury


class ErrorResponse(BaseModel):
    error: str
    detail: str
