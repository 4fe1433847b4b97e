from __future__ import annotations

import pytest
from pydantic import ValidationError

from updown.core.config import Settings


def test_admins_accept_comma_separated_string():
    settings = Settings(admins=" alice, bob ,,carol ")

    assert settings.admins == ["alice", "bob", "carol"]


def test_log_level_is_normalized():
    assert Settings(log_level=" debug ").log_level == "DEBUG"


def test_bid_buffer_must_be_shorter_than_interval():
    with pytest.raises(ValidationError):
        Settings(round_interval_seconds=60, bid_buffer_seconds=60)


def test_fee_rate_is_bounded():
    with pytest.raises(ValidationError):
        Settings(fee_bps=10_001)


def test_round_config_values_seed_admins_as_list():
    values = Settings(admins="admin1", fee_bps=250).round_config_values()

    assert values["admins"] == ["admin1"]
    assert values["fee_bps"] == 250
    assert set(values) == {
        "round_interval_seconds",
        "bid_buffer_seconds",
        "min_bet_amount",
        "fee_bps",
        "treasury_address",
        "oracle_address",
        "asset_id",
        "admins",
    }


def test_postgres_scheme_is_rewritten():
    settings = Settings(database_url="postgres://user:pw@db:5432/updown")

    assert settings.resolved_database_url.startswith("postgresql://")
