from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from updown.domain.models import Side
from updown.errors import (
    AlreadyClaimed,
    OracleUnavailable,
    RoundNotFound,
    TooEarly,
    TransferFailed,
    Unauthorized,
)
from updown.main import _game_service, app
from updown.services import ClaimResult, CloseResult, LockResult


def _round(epoch: int = 1, **overrides) -> SimpleNamespace:
    payload = {
        "epoch": epoch,
        "open_time": 0,
        "lock_time": 300,
        "close_time": 600,
        "state": "created",
        "fee_bps": 1500,
        "asset_id": "BTC-USD",
        "lock_price": None,
        "lock_oracle_at": None,
        "close_price": None,
        "close_oracle_at": None,
        "total_up_amount": 0,
        "total_down_amount": 0,
        "total_amount": 0,
        "up_bets_count": 0,
        "down_bets_count": 0,
        "outcome": None,
        "refund_reason": None,
        "fee_amount": None,
        "distributable_amount": None,
        "locked_at": None,
        "closed_at": None,
    }
    payload.update(overrides)
    return SimpleNamespace(**payload)


def _bet(**overrides) -> SimpleNamespace:
    payload = {
        "epoch": 1,
        "participant": "alice",
        "side": "up",
        "amount": 100,
        "placed_at": 10,
        "claimed": False,
        "claimed_at": None,
        "claimed_amount": None,
    }
    payload.update(overrides)
    return SimpleNamespace(**payload)


@pytest.fixture
def client():
    """Test client that cleans up dependency overrides after each test."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def mock_game():
    service = MagicMock()
    app.dependency_overrides[_game_service] = lambda: service
    return service


def test_healthcheck(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_get_config(client, mock_game):
    mock_game.get_config.return_value = SimpleNamespace(
        round_interval_seconds=300,
        bid_buffer_seconds=30,
        min_bet_amount=10,
        fee_bps=1500,
        treasury_address="treasury1",
        oracle_address="oracle",
        asset_id="BTC-USD",
        admins=["admin1"],
        updated_at=datetime(2024, 1, 1),
    )

    response = client.get("/config")
    assert response.status_code == 200
    body = response.json()
    assert body["fee_bps"] == 1500
    assert body["admins"] == ["admin1"]


def test_update_config_forwards_actor_and_changes(client, mock_game):
    mock_game.update_config.side_effect = Unauthorized()

    response = client.patch("/config", json={"fee_bps": 500}, headers={"X-Actor": "mallory"})
    assert response.status_code == 403
    assert response.json()["error"] == "unauthorized"
    mock_game.update_config.assert_called_once_with("mallory", {"fee_bps": 500})


def test_update_config_rejects_out_of_range_fee(client, mock_game):
    response = client.patch("/config", json={"fee_bps": 20_000}, headers={"X-Actor": "admin1"})
    assert response.status_code == 422
    mock_game.update_config.assert_not_called()


def test_genesis_returns_created_round(client, mock_game):
    mock_game.genesis.return_value = _round()

    response = client.post("/rounds/genesis")
    assert response.status_code == 201
    assert response.json()["epoch"] == 1
    assert response.json()["close_time"] == 600


def test_lock_round_too_early_maps_to_conflict(client, mock_game):
    mock_game.lock_round.side_effect = TooEarly()

    response = client.post("/rounds/lock")
    assert response.status_code == 409
    assert response.json()["error"] == "too_early"


def test_lock_round_reports_both_rounds(client, mock_game):
    mock_game.lock_round.return_value = LockResult(
        locked=_round(state="locked", lock_price=Decimal("101.2500"), lock_oracle_at=300),
        started=_round(epoch=2, open_time=300, lock_time=600, close_time=900),
    )

    response = client.post("/rounds/lock")
    assert response.status_code == 200
    body = response.json()
    assert body["locked"]["lock_price"] == "101.25"
    assert body["started"]["epoch"] == 2
    assert body["oracle_failed"] is False


def test_close_round_returns_settled_round(client, mock_game):
    mock_game.close_round.return_value = CloseResult(
        round=_round(state="closed", outcome="up", fee_amount=22, distributable_amount=128),
        breakdown=MagicMock(),
    )

    response = client.post("/rounds/close")
    assert response.status_code == 200
    assert response.json()["outcome"] == "up"
    assert response.json()["distributable_amount"] == 128


def test_list_rounds_passes_filters(client, mock_game):
    mock_game.list_rounds.return_value = ([_round(2), _round(1)], 2)

    response = client.get("/rounds", params={"state": "created", "order": "asc", "limit": 5})
    assert response.status_code == 200
    assert response.json()["total"] == 2
    assert [item["epoch"] for item in response.json()["items"]] == [2, 1]
    kwargs = mock_game.list_rounds.call_args.kwargs
    assert kwargs["order"] == "asc"
    assert kwargs["limit"] == 5
    assert kwargs["offset"] == 0


def test_active_round_missing_returns_404(client, mock_game):
    mock_game.get_active_round.return_value = None

    response = client.get("/rounds/active")
    assert response.status_code == 404
    assert response.json()["error"] == "round_not_found"


def test_get_round_not_found(client, mock_game):
    mock_game.get_round.side_effect = RoundNotFound("Round 99 does not exist")

    response = client.get("/rounds/99")
    assert response.status_code == 404
    assert response.json() == {"error": "round_not_found", "detail": "Round 99 does not exist"}
    mock_game.get_round.assert_called_once_with(99)


def test_list_round_bets(client, mock_game):
    mock_game.list_bets.return_value = [_bet(), _bet(participant="bob", side="down", amount=50)]

    response = client.get("/rounds/1/bets")
    assert response.status_code == 200
    assert response.json()["total"] == 2
    assert response.json()["items"][1]["side"] == "down"


def test_place_bet(client, mock_game):
    mock_game.place_bet.return_value = _bet()

    response = client.post("/bets", json={"participant": "alice", "side": "up", "amount": 100})
    assert response.status_code == 201
    assert response.json()["amount"] == 100
    mock_game.place_bet.assert_called_once_with("alice", Side.UP, 100, epoch=None)


def test_place_bet_rejects_unknown_side(client, mock_game):
    response = client.post("/bets", json={"participant": "alice", "side": "sideways", "amount": 100})
    assert response.status_code == 422
    mock_game.place_bet.assert_not_called()


def test_claim(client, mock_game):
    mock_game.claim.return_value = ClaimResult(
        epoch=1, participant="alice", amount=128, refund=False
    )

    response = client.post("/rounds/1/claim", json={"participant": "alice"})
    assert response.status_code == 200
    assert response.json() == {"epoch": 1, "participant": "alice", "amount": 128, "refund": False}


@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (AlreadyClaimed(), 409),
        (TransferFailed(), 502),
        (OracleUnavailable(), 503),
    ],
)
def test_claim_error_mapping(client, mock_game, error, status_code):
    mock_game.claim.side_effect = error

    response = client.post("/rounds/1/claim", json={"participant": "alice"})
    assert response.status_code == status_code
    assert response.json()["error"] == error.code


def test_treasury_withdrawal(client, mock_game):
    mock_game.withdraw_treasury.return_value = 22
    mock_game.get_treasury.return_value = SimpleNamespace(
        balance=0, total_collected=22, total_withdrawn=22
    )

    response = client.post("/treasury/withdraw", json={}, headers={"X-Actor": "admin1"})
    assert response.status_code == 200
    assert response.json()["withdrawn"] == 22
    assert response.json()["treasury"]["total_withdrawn"] == 22
    mock_game.withdraw_treasury.assert_called_once_with("admin1", None)
