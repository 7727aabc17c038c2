"""
Tests for the Predict.fun REST gateway, against a fake requests session.
"""

from decimal import Decimal

import pytest
import requests

from predict_ladder_bot.config.loader import ExchangeConfig
from predict_ladder_bot.exchange.gateway import (
    CancelRequest,
    GatewayError,
    OrderSide,
    OrderStatus,
    OrderType,
)
from predict_ladder_bot.exchange.predict_client import (
    PredictClient,
    SignedOrder,
    parse_remote_order,
)


class FakeResponse:

    def __init__(self, body, status_code=200):
        self._body = body
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    """Routes (method, path) to queued responses and records every request."""

    def __init__(self, base="https://api.predict.fun"):
        self.base = base
        self.routes = {}
        self.requests = []

    def add(self, method, path, *bodies):
        self.routes.setdefault((method, path), []).extend(bodies)

    def request(self, method, url, headers=None, params=None, json=None, timeout=None):
        path = url[len(self.base):]
        self.requests.append({"method": method, "path": path, "headers": headers, "params": params, "json": json})
        queue = self.routes.get((method, path))
        if not queue:
            raise requests.ConnectionError(f"no route for {method} {path}")
        body = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(body, requests.RequestException):
            raise body
        return body if isinstance(body, FakeResponse) else FakeResponse(body)


class FakeSigner:

    def __init__(self, fail_neg_risk=False):
        self.built = []
        self.cancelled = []
        self.fail_neg_risk = fail_neg_risk

    def build_order(self, request):
        self.built.append(request)
        return SignedOrder(order={"side": int(request.side)}, order_hash="0x" + "ab" * 32, price_per_share="617000000000000000")

    def cancel_orders(self, orders, *, is_neg_risk, is_yield_bearing):
        self.cancelled.append((is_neg_risk, is_yield_bearing, orders))
        if is_neg_risk and self.fail_neg_risk:
            raise RuntimeError("tx reverted")
        return {"success": True}


MARKET = {
    "success": True,
    "data": {
        "id": 101,
        "title": "Will it rain tomorrow?",
        "feeRateBps": 200,
        "isNegRisk": False,
        "isYieldBearing": True,
        "outcomes": [{"name": "Yes", "onChainId": "111"}, {"name": "No", "onChainId": "222"}],
    },
}


@pytest.fixture
def exchange_cfg(monkeypatch):
    monkeypatch.setenv("TEST_PREDICT_API_KEY", "key-123")
    monkeypatch.setenv("TEST_PREDICT_JWT", "jwt-456")
    monkeypatch.setenv("TEST_PREDICT_ACCOUNT", "0xacc")
    return ExchangeConfig(
        api_url="https://api.predict.fun/",
        api_key_env="TEST_PREDICT_API_KEY",
        auth_token_env="TEST_PREDICT_JWT",
        account_address_env="TEST_PREDICT_ACCOUNT",
    )


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def signer():
    return FakeSigner()


@pytest.fixture
def client(exchange_cfg, signer, store, session):
    return PredictClient(exchange_cfg, signer, store, session=session, page_delay_sec=0)


class TestTransport:

    def test_auth_headers(self, client, session):
        session.add("GET", "/v1/markets/101/orderbook", {"success": True, "data": {"bids": []}})

        client.fetch_order_book(101)

        headers = session.requests[0]["headers"]
        assert headers["x-api-key"] == "key-123"
        assert headers["Authorization"] == "Bearer jwt-456"

    def test_unsuccessful_envelope(self, client, session):
        session.add("GET", "/v1/markets/101/orderbook", {"success": False, "message": "nope"})

        with pytest.raises(GatewayError):
            client.fetch_order_book(101)

    def test_http_error(self, client, session):
        session.add("GET", "/v1/markets/101/orderbook", FakeResponse({}, status_code=503))

        with pytest.raises(GatewayError):
            client.fetch_order_book(101)

    def test_connection_error(self, client):
        with pytest.raises(GatewayError):
            client.fetch_order_book(999)

    def test_invalid_json(self, client, session):
        session.add("GET", "/v1/markets/101/orderbook", FakeResponse(ValueError("bad json")))

        with pytest.raises(GatewayError):
            client.fetch_order_book(101)


class TestOrderBook:

    def test_parses_bids_in_exchange_order(self, client, session):
        session.add("GET", "/v1/markets/101/orderbook", {
            "success": True,
            "data": {"bids": [["0.62", "1000"], [0.61, 500], ["bad"]], "asks": [["0.63", "10"]]},
        })

        bids = client.fetch_order_book(101)

        assert [b.price for b in bids] == [0.62, 0.61]
        assert bids[0].quantity == 1000.0
        assert bids[0].value == pytest.approx(620.0)


class TestOpenOrder:

    def test_limit_buy_is_signed_submitted_and_stored(self, client, session, signer, store):
        session.add("GET", "/v1/markets/101", MARKET)
        session.add("POST", "/v1/orders", {"success": True, "data": {"orderId": "9001"}})

        result = client.open_order(101, "1", 0.617)

        assert result.success
        assert result.order_ref == "0x" + "ab" * 32
        assert result.order_id == "9001"

        built = signer.built[0]
        assert built.token_id == "111"
        assert built.price == "0.617"
        assert built.side == OrderSide.BUY
        assert built.order_type == OrderType.LIMIT
        assert built.is_yield_bearing is True

        body = session.requests[-1]["json"]["data"]
        assert body["strategy"] == "LIMIT"
        assert body["order"]["hash"] == result.order_ref
        assert "slippageBps" not in body

        stored = store.get_order(result.order_ref)
        assert stored["order_id"] == "9001"
        assert store.get_market_title(101) == "Will it rain tomorrow?"

    def test_market_lookup_is_cached(self, client, session):
        session.add("GET", "/v1/markets/101", MARKET)
        session.add("POST", "/v1/orders", {"success": True, "data": {"orderId": "1"}})

        client.open_order(101, "1", 0.5)
        client.open_order(101, "1", 0.4)

        market_gets = [r for r in session.requests if r["path"] == "/v1/markets/101"]
        assert len(market_gets) == 1

    def test_rejected_order_reports_failure(self, client, session, store):
        session.add("GET", "/v1/markets/101", MARKET)
        session.add("POST", "/v1/orders", {"success": False, "message": "insufficient balance"})

        result = client.open_order(101, "1", 0.617)

        assert not result.success
        assert result.error
        assert store.count_orders() == 0


class TestCancelOrders:

    def test_groups_by_flags_and_reports_partial_failure(self, exchange_cfg, store, session):
        signer = FakeSigner(fail_neg_risk=True)
        client = PredictClient(exchange_cfg, signer, store, session=session, page_delay_sec=0)
        for ref in ("0x1", "0x2", "0x3"):
            store.add_order(ref, None, 101, "Rain?")

        result = client.cancel_orders([
            CancelRequest("0x1", 101, is_neg_risk=False, is_yield_bearing=False, payload={"hash": "0x1"}),
            CancelRequest("0x2", 101, is_neg_risk=True, is_yield_bearing=False, payload={"hash": "0x2"}),
            CancelRequest("0x3", 101, is_neg_risk=False, is_yield_bearing=False, payload={"hash": "0x3"}),
        ])

        assert not result.success
        assert len(signer.cancelled) == 2
        assert result.cancelled_refs == {"0x1", "0x3"}
        assert store.get_order("0x1") is None
        assert store.get_order("0x2") is not None

    def test_empty_batch(self, client, signer):
        result = client.cancel_orders([])

        assert result.success
        assert signer.cancelled == []


class TestGetOrder:

    def test_parses_details_and_caches_them(self, client, session, store):
        store.add_order("0xabc", None, 101, "Rain?")
        session.add("GET", "/v1/orders/0xabc", {
            "success": True,
            "data": {
                "id": 55,
                "marketId": 101,
                "status": "FILLED",
                "isNegRisk": True,
                "order": {"side": 0, "makerAmount": "617", "takerAmount": "1000", "hash": "0xabc"},
            },
        })

        details = client.get_order("0xabc")

        assert details.status == OrderStatus.FILLED
        assert details.is_neg_risk is True
        assert details.side == OrderSide.BUY
        assert details.maker_amount == Decimal("617")
        assert details.payload["hash"] == "0xabc"
        assert client.get_order_status("0xabc") == OrderStatus.FILLED
        assert store.get_order("0xabc")["details"]["status"] == "FILLED"

    def test_unknown_status(self, client, session):
        session.add("GET", "/v1/orders/0xabc", {"success": True, "data": {"status": "PENDING_SOMETHING"}})

        assert client.get_order("0xabc").status == OrderStatus.UNKNOWN


class TestOpenOrderListing:

    def test_follows_cursor_across_pages(self, client, session):
        session.add(
            "GET", "/v1/orders",
            {"success": True, "data": [{"id": 1, "marketId": 101, "hash": "0x1", "side": 0}], "cursor": "c1"},
            {"success": True, "data": [{"id": 2, "marketId": 102, "order": {"hash": "0x2", "side": 1}}], "cursor": None},
        )

        orders = client.list_all_open_orders()

        assert [o.order_ref for o in orders] == ["0x1", "0x2"]
        assert orders[1].side == OrderSide.SELL
        assert session.requests[0]["params"] == {"status": "OPEN"}
        assert session.requests[1]["params"] == {"status": "OPEN", "after": "c1"}

    def test_repeated_cursor_fails_whole_listing(self, client, session):
        session.add(
            "GET", "/v1/orders",
            {"success": True, "data": [{"marketId": 101, "hash": "0x1"}], "cursor": "c1"},
            {"success": True, "data": [{"marketId": 101, "hash": "0x2"}], "cursor": "c1"},
        )

        with pytest.raises(GatewayError):
            client.list_all_open_orders()

    def test_failing_page_fails_whole_listing(self, client, session):
        session.add(
            "GET", "/v1/orders",
            {"success": True, "data": [{"marketId": 101, "hash": "0x1"}], "cursor": "c1"},
            {"success": False},
        )

        with pytest.raises(GatewayError):
            client.list_all_open_orders()


class TestParseRemoteOrder:

    def test_top_level_fields(self):
        order = parse_remote_order({
            "id": 9, "marketId": "101", "orderHash": "0xfeed", "side": 0,
            "makerAmount": "617", "takerAmount": "1000",
        })

        assert order.market_id == 101
        assert order.order_ref == "0xfeed"
        assert order.side == OrderSide.BUY
        assert order.taker_amount == Decimal("1000")
        assert order.order_id == "9"

    def test_nested_order(self):
        order = parse_remote_order({
            "marketId": 5, "order": {"hash": "0xbeef", "side": "SELL", "makerAmount": "10", "takerAmount": "4"},
        })

        assert order.order_ref == "0xbeef"
        assert order.side == OrderSide.SELL
        assert order.maker_amount == Decimal("10")

    def test_missing_hash_or_market(self):
        assert parse_remote_order({"marketId": 5}) is None
        assert parse_remote_order({"hash": "0x1"}) is None

    def test_unknown_side(self):
        order = parse_remote_order({"marketId": 5, "hash": "0x1", "side": 7})

        assert order.side is None
