"""Ledger services operating on an explicit SQLAlchemy session."""

from .bet_ledger import BetLedger, ClaimResult
from .game_service import PredictionGame
from .round_ledger import CloseResult, LockResult, RoundLedger

__all__ = [
    "BetLedger",
    "ClaimResult",
    "CloseResult",
    "LockResult",
    "PredictionGame",
    "RoundLedger",
]
