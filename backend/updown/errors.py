"""Error taxonomy surfaced by ledger operations."""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    TIMING = "timing"
    STATE = "state"
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    EXTERNAL = "external"


class GameError(Exception):
    """Base class for every rejected operation."""

    code = "game_error"
    category = ErrorCategory.VALIDATION
    default_message = "Operation rejected"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


# Timing errors: the caller may retry later.


class TooEarly(GameError):
    code = "too_early"
    category = ErrorCategory.TIMING
    default_message = "The round is not yet eligible for this transition"


class RoundNotBiddable(GameError):
    code = "round_not_biddable"
    category = ErrorCategory.TIMING
    default_message = "The round no longer accepts bets"


# State errors: redundant or out-of-order calls.


class AlreadyLocked(GameError):
    code = "already_locked"
    category = ErrorCategory.STATE
    default_message = "The round has already been locked"


class NotLocked(GameError):
    code = "not_locked"
    category = ErrorCategory.STATE
    default_message = "There is no locked round to close"


class RoundAlreadyActive(GameError):
    code = "round_already_active"
    category = ErrorCategory.STATE
    default_message = "A round is already open for bets"


class AlreadyClaimed(GameError):
    code = "already_claimed"
    category = ErrorCategory.STATE
    default_message = "This bet has already been claimed"


class RoundNotClosed(GameError):
    code = "round_not_closed"
    category = ErrorCategory.STATE
    default_message = "The round has not been closed yet"


class AlreadyInitialized(GameError):
    code = "already_initialized"
    category = ErrorCategory.STATE
    default_message = "The round sequence has already been started"


class NotInitialized(GameError):
    code = "not_initialized"
    category = ErrorCategory.STATE
    default_message = "The game has not been initialized"


# Validation errors: rejected before any mutation.


class BetTooSmall(GameError):
    code = "bet_too_small"
    default_message = "The bet is below the minimum amount"


class DuplicateBet(GameError):
    code = "duplicate_bet"
    default_message = "A bet has already been placed in this round"


class RoundNotFound(GameError):
    code = "round_not_found"
    default_message = "Round not found"


class BetNotFound(GameError):
    code = "bet_not_found"
    default_message = "No bet found for this participant in the round"


class NothingToClaim(GameError):
    code = "nothing_to_claim"
    default_message = "The bet did not win anything"


class InvalidConfig(GameError):
    code = "invalid_config"
    default_message = "Invalid configuration"


class ArithmeticOverflow(GameError):
    code = "arithmetic_overflow"
    default_message = "Amount exceeds the supported range"


class InsufficientTreasuryBalance(GameError):
    code = "insufficient_treasury_balance"
    default_message = "The treasury balance is too low for this withdrawal"


class NothingToWithdraw(GameError):
    code = "nothing_to_withdraw"
    default_message = "The treasury has nothing to withdraw"


class Unauthorized(GameError):
    code = "unauthorized"
    category = ErrorCategory.AUTHORIZATION
    default_message = "Unauthorized"


# External dependency errors.


class OracleUnavailable(GameError):
    code = "oracle_unavailable"
    category = ErrorCategory.EXTERNAL
    default_message = "The price oracle returned no usable data"


class TransferFailed(GameError):
    code = "transfer_failed"
    category = ErrorCategory.EXTERNAL
    default_message = "Custody transfer failed"


NOT_FOUND_ERRORS: tuple[type[GameError], ...] = (RoundNotFound, BetNotFound)

__all__ = [
    "AlreadyClaimed",
    "AlreadyInitialized",
    "AlreadyLocked",
    "ArithmeticOverflow",
    "BetNotFound",
    "BetTooSmall",
    "DuplicateBet",
    "ErrorCategory",
    "GameError",
    "InsufficientTreasuryBalance",
    "InvalidConfig",
    "NOT_FOUND_ERRORS",
    "NotInitialized",
    "NotLocked",
    "NothingToClaim",
    "NothingToWithdraw",
    "OracleUnavailable",
    "RoundAlreadyActive",
    "RoundNotBiddable",
    "RoundNotClosed",
    "RoundNotFound",
    "TooEarly",
    "TransferFailed",
    "Unauthorized",
]
