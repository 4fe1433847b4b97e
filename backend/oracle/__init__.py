"""HTTP adapter for the external price oracle."""

from .client import PriceOracleClient
from .normalize import normalize_quote

__all__ = ["PriceOracleClient", "normalize_quote"]
