from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from updown.core.config import Settings
from updown.db import Base
from updown.domain.models import PriceQuote
from updown.errors import OracleUnavailable
from updown.services import PredictionGame
from updown.services.custody import RecordingCustody

import updown.models  # noqa: F401  (registers tables on Base.metadata)

ADMIN = "admin1"
TREASURY = "treasury1"


class ManualClock:
    def __init__(self, start: int = 0) -> None:
        self.current = start

    def now(self) -> int:
        return self.current

    def set(self, value: int) -> None:
        self.current = value


class ScriptedOracle:
    """Returns prices keyed by the requested timestamp; unknown times fail."""

    def __init__(self) -> None:
        self.prices: dict[int, PriceQuote] = {}
        self.calls: list[tuple[str, int]] = []

    def set_price(self, at: int, price, *, quoted_at: int | None = None) -> None:
        self.prices[at] = PriceQuote(
            price=Decimal(str(price)),
            timestamp=at if quoted_at is None else quoted_at,
        )

    def get_price(self, asset_id: str, at_or_before: int) -> PriceQuote:
        self.calls.append((asset_id, at_or_before))
        quote = self.prices.get(at_or_before)
        if quote is None:
            raise OracleUnavailable(f"no price at {at_or_before}")
        return quote


@pytest.fixture
def test_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        database_url=f"sqlite:///{tmp_path/'updown.db'}",
        round_interval_seconds=300,
        bid_buffer_seconds=30,
        min_bet_amount=10,
        fee_bps=1500,
        treasury_address=TREASURY,
        admins=[ADMIN],
        oracle_max_staleness_seconds=60,
    )
    monkeypatch.setattr("updown.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("updown.core.config.settings", settings)
    return settings


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=True, autocommit=False, future=True)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def oracle() -> ScriptedOracle:
    return ScriptedOracle()


@pytest.fixture
def game(session, clock, oracle, test_settings) -> PredictionGame:
    game = PredictionGame.from_settings(
        session,
        test_settings,
        clock=clock,
        oracle=oracle,
        custody=RecordingCustody(session),
    )
    game.initialize_config(test_settings.round_config_values())
    return game
