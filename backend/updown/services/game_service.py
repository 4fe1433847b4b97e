"""Transactional facade exposing every game operation to callers."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from loguru import logger
from sqlalchemy.orm import Session

from updown.core.config import Settings
from updown.domain.models import BPS_DENOMINATOR, MAX_AMOUNT, RoundState, Side, TransferReason
from updown.domain.ports import Clock, Custody, PriceOracle
from updown.errors import GameError, InvalidConfig, NotInitialized, RoundNotBiddable, Unauthorized
from updown.models import Bet, GameConfig, Round, TreasuryBalance
from updown.repositories import ConfigRepository

from . import settlement
from .bet_ledger import BetLedger, ClaimResult
from .round_ledger import CloseResult, LockResult, RoundLedger, stored_breakdown
from .treasury import Treasury

CONFIG_FIELDS = (
    "round_interval_seconds",
    "bid_buffer_seconds",
    "min_bet_amount",
    "fee_bps",
    "treasury_address",
    "oracle_address",
    "asset_id",
    "admins",
)


def validate_config_values(values: dict[str, Any]) -> dict[str, Any]:
    """Check a complete set of configuration values, returning them unchanged."""

    missing = [name for name in CONFIG_FIELDS if name not in values]
    if missing:
        raise InvalidConfig(f"Missing configuration fields: {', '.join(missing)}")

    interval = values["round_interval_seconds"]
    buffer = values["bid_buffer_seconds"]
    if not isinstance(interval, int) or interval <= 0:
        raise InvalidConfig("round_interval_seconds must be a positive integer")
    if not isinstance(buffer, int) or not 0 <= buffer < interval:
        raise InvalidConfig("bid_buffer_seconds must be within [0, round_interval_seconds)")
    min_bet = values["min_bet_amount"]
    if not isinstance(min_bet, int) or not 1 <= min_bet <= MAX_AMOUNT:
        raise InvalidConfig("min_bet_amount must be a positive integer")
    fee_bps = values["fee_bps"]
    if not isinstance(fee_bps, int) or not 0 <= fee_bps <= BPS_DENOMINATOR:
        raise InvalidConfig(f"fee_bps must be within 0..{BPS_DENOMINATOR}")
    for name in ("treasury_address", "oracle_address", "asset_id"):
        if not isinstance(values[name], str) or not values[name].strip():
            raise InvalidConfig(f"{name} must be a non-empty string")
    admins = values["admins"]
    if not isinstance(admins, (list, tuple)) or not all(isinstance(a, str) for a in admins):
        raise InvalidConfig("admins must be a list of addresses")
    return values


def config_values(record: GameConfig) -> dict[str, Any]:
    return {name: getattr(record, name) for name in CONFIG_FIELDS}


class PredictionGame:
    """Apply one operation at a time, each inside its own transaction.

    The session, clock, oracle and custody are supplied by the caller; the
    facade never reaches for ambient state. A raised ``GameError`` always
    leaves storage exactly as it was before the call.
    """

    def __init__(
        self,
        session: Session,
        *,
        clock: Clock,
        oracle: PriceOracle,
        custody: Custody,
        max_staleness_seconds: int | None = None,
    ) -> None:
        self._session = session
        self._clock = clock
        self._custody = custody
        self._config_repo = ConfigRepository(session)
        self._rounds = RoundLedger(
            session,
            clock=clock,
            oracle=oracle,
            max_staleness_seconds=max_staleness_seconds,
        )
        self._bets = BetLedger(session, clock=clock)
        self._treasury = Treasury(session)

    @classmethod
    def from_settings(
        cls,
        session: Session,
        settings: Settings,
        *,
        clock: Clock,
        oracle: PriceOracle,
        custody: Custody,
    ) -> "PredictionGame":
        return cls(
            session,
            clock=clock,
            oracle=oracle,
            custody=custody,
            max_staleness_seconds=settings.oracle_max_staleness_seconds,
        )

    @contextmanager
    def _atomic(self, operation: str) -> Iterator[None]:
        try:
            yield
            self._session.commit()
        except GameError as exc:
            self._session.rollback()
            logger.info("{} rejected: {} ({})", operation, exc.code, exc)
            raise
        except Exception:
            self._session.rollback()
            logger.exception("{} failed unexpectedly", operation)
            raise

    def _require_config(self) -> GameConfig:
        record = self._config_repo.get_config()
        if record is None:
            raise NotInitialized("Game configuration has not been initialized")
        return record

    # ------------------------------------------------------------------
    # Configuration

    def initialize_config(self, values: dict[str, Any]) -> GameConfig:
        """Seed the configuration row; an existing row is returned untouched."""

        with self._atomic("initialize_config"):
            record = self._config_repo.get_config()
            if record is None:
                record = self._config_repo.create_config(
                    validate_config_values(dict(values))
                )
                self._treasury.balance()
                logger.info("Game configuration initialized for asset {}", record.asset_id)
        return record

    def update_config(self, actor: str | None, changes: dict[str, Any]) -> GameConfig:
        with self._atomic("update_config"):
            record = self._require_config()
            if not record.is_admin(actor):
                raise Unauthorized(f"{actor!r} may not update configuration")
            unknown = sorted(set(changes) - set(CONFIG_FIELDS))
            if unknown:
                raise InvalidConfig(f"Unknown configuration fields: {', '.join(unknown)}")
            merged = config_values(record)
            merged.update(changes)
            validate_config_values(merged)
            self._config_repo.apply_changes(record, changes)
            logger.info("Configuration updated by {}: {}", actor, sorted(changes))
        return record

    def get_config(self) -> GameConfig:
        return self._require_config()

    # ------------------------------------------------------------------
    # Round lifecycle

    def genesis(self) -> Round:
        with self._atomic("genesis"):
            record = self._rounds.genesis(self._require_config())
        return record

    def lock_round(self, epoch: int | None = None) -> LockResult:
        with self._atomic("lock_round"):
            result = self._rounds.lock(self._require_config(), epoch)
        return result

    def close_round(self, epoch: int | None = None) -> CloseResult:
        with self._atomic("close_round"):
            self._require_config()
            result = self._rounds.close(epoch)
            self._treasury.credit(result.breakdown.fee, epoch=result.round.epoch)
        return result

    # ------------------------------------------------------------------
    # Bets and claims

    def place_bet(
        self,
        participant: str,
        side: Side,
        amount: int,
        *,
        epoch: int | None = None,
    ) -> Bet:
        with self._atomic("place_bet"):
            config = self._require_config()
            if epoch is None:
                active = self._rounds.get_active_round()
                if active is None:
                    raise RoundNotBiddable("No round is open for bets")
                epoch = active.epoch
            bet = self._bets.place_bet(
                config,
                epoch=epoch,
                participant=participant,
                side=side,
                amount=amount,
            )
        return bet

    def claim(self, epoch: int, participant: str) -> ClaimResult:
        with self._atomic("claim"):
            result = self._bets.claim(epoch=epoch, participant=participant)
            self._custody.transfer(
                participant,
                result.amount,
                reason=TransferReason.CLAIM.value,
                epoch=epoch,
            )
        return result

    def claimable(self, epoch: int, participant: str) -> int:
        """Preview what a bet would pay; zero while the round is unsettled."""

        record = self._rounds.get_round(epoch)
        bet = self._bets.get_bet(epoch, participant)
        if record.state != RoundState.CLOSED.value or bet.claimed:
            return 0
        return settlement.claimable_amount(
            stored_breakdown(record), Side(bet.side), bet.amount
        )

    # ------------------------------------------------------------------
    # Treasury

    def withdraw_treasury(self, actor: str | None, amount: int | None = None) -> int:
        with self._atomic("withdraw_treasury"):
            config = self._require_config()
            if not config.is_admin(actor):
                raise Unauthorized(f"{actor!r} may not withdraw treasury funds")
            withdrawn = self._treasury.debit(amount)
            self._custody.transfer(
                config.treasury_address,
                withdrawn,
                reason=TransferReason.TREASURY_WITHDRAWAL.value,
            )
            logger.info("Treasury withdrawal of {} to {}", withdrawn, config.treasury_address)
        return withdrawn

    def get_treasury(self) -> TreasuryBalance:
        return self._treasury.balance()

    # ------------------------------------------------------------------
    # Queries

    def get_round(self, epoch: int) -> Round:
        return self._rounds.get_round(epoch)

    def get_active_round(self) -> Round | None:
        return self._rounds.get_active_round()

    def list_rounds(
        self,
        *,
        state: RoundState | None = None,
        order: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Round], int]:
        return self._rounds.list_rounds(state=state, order=order, limit=limit, offset=offset)

    def get_bet(self, epoch: int, participant: str) -> Bet:
        return self._bets.get_bet(epoch, participant)

    def list_bets(self, epoch: int) -> list[Bet]:
        self._rounds.get_round(epoch)
        return self._bets.list_bets(epoch)
