from __future__ import annotations

from decimal import Decimal

import httpx
import pytest

from oracle import PriceOracleClient, normalize_quote
from updown.domain.models import PriceQuote
from updown.errors import OracleUnavailable


def _client(handler) -> PriceOracleClient:
    return PriceOracleClient(
        base_url="http://oracle.test",
        price_path="/prices/{asset_id}",
        transport=httpx.MockTransport(handler),
    )


def test_get_price_queries_asset_path_with_timestamp():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"price": "101.25", "timestamp": 299})

    with _client(handler) as client:
        quote = client.get_price("BTC-USD", 300)

    assert quote == PriceQuote(price=Decimal("101.25"), timestamp=299)
    assert seen[0].url.path == "/prices/BTC-USD"
    assert seen[0].url.params["at_or_before"] == "300"


def test_get_price_unwraps_nested_payload():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"data": {"rate": 64000.5, "publish_time": "2024-01-01T00:00:00Z"}}
        )

    with _client(handler) as client:
        quote = client.get_price("BTC-USD", 1_704_067_200)

    assert quote.price == Decimal("64000.5")
    assert quote.timestamp == 1_704_067_200


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "boom"}),
        httpx.Response(404, json={"error": "unknown asset"}),
        httpx.Response(200, json={"timestamp": 299}),
        httpx.Response(200, content=b"not json"),
    ],
)
def test_get_price_failures_raise_oracle_unavailable(response):
    with _client(lambda request: response) as client:
        with pytest.raises(OracleUnavailable):
            client.get_price("BTC-USD", 300)


def test_transport_error_raises_oracle_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with _client(handler) as client:
        with pytest.raises(OracleUnavailable):
            client.get_price("BTC-USD", 300)


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        {"price": 0, "timestamp": 1},
        {"price": -5, "timestamp": 1},
        {"price": "NaN", "timestamp": 1},
        {"price": True, "timestamp": 1},
        {"price": "abc", "timestamp": 1},
        {"price": 10, "timestamp": "yesterday"},
    ],
)
def test_normalize_quote_rejects_unusable_payloads(payload):
    assert normalize_quote(payload) is None


def test_normalize_quote_accepts_digit_string_timestamp():
    quote = normalize_quote({"result": {"value": 3, "time": "1700000000"}})

    assert quote == PriceQuote(price=Decimal("3"), timestamp=1_700_000_000)
