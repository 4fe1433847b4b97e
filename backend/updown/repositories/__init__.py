"""Repository abstractions for database interactions."""

from .bet_repository import BetRepository
from .config_repository import ConfigRepository
from .round_repository import RoundRepository

__all__ = [
    "BetRepository",
    "ConfigRepository",
    "RoundRepository",
]
