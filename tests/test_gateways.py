import json
import os
import sys

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
for path in (PROJECT_ROOT, CURRENT_DIR):
    if path not in sys.path:
        sys.path.insert(0, path)

import requests

from spot_trader.config.schema import GatewayConfig
from spot_trader.data.gate_io import GateIOGateway, candles_to_frame, sign_request
from spot_trader.data.paper import PaperGateway
from spot_trader.errors import GatewayUnavailable

from fakes import FakeGateway

import unittest


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code
        self.text = json.dumps(payload)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, payload=None, status_code=200, error=None):
        self.payload = payload
        self.status_code = status_code
        self.error = error
        self.calls = []

    def request(self, method, url, data=None, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "data": data, "headers": headers})
        if self.error is not None:
            raise self.error
        return FakeResponse(self.payload, self.status_code)


def _gateway(session: FakeSession) -> GateIOGateway:
    return GateIOGateway(GatewayConfig(api_key="k", api_secret="s"), session=session)


class TestGateIOGateway(unittest.TestCase):
    def test_candles_are_parsed_oldest_first(self) -> None:
        rows = [
            ["1700086400", "50", "10.6", "10.9", "10.1", "10.5", "4.7", "true"],
            ["1700000000", "100", "10.5", "11", "10", "10.2", "9.5", "true"],
        ]
        df = candles_to_frame(rows)
        self.assertEqual(list(df.columns), ["open", "high", "low", "close", "volume"])
        first = df.iloc[0]
        self.assertEqual(
            (first["open"], first["high"], first["low"], first["close"], first["volume"]),
            (10.2, 11.0, 10.0, 10.5, 9.5),
        )
        self.assertEqual(df["close"].tolist(), [10.5, 10.6])

    def test_price_series_is_public(self) -> None:
        session = FakeSession(payload=[["1700000000", "100", "10.5", "11", "10", "10.2", "9.5", "true"]])
        df = _gateway(session).get_price_series("BTC_USDT", "1d", 100)
        self.assertEqual(len(df), 1)
        call = session.calls[0]
        self.assertIn("/spot/candlesticks?currency_pair=BTC_USDT&interval=1d&limit=100", call["url"])
        self.assertNotIn("SIGN", call["headers"])

    def test_orders_are_signed(self) -> None:
        session = FakeSession(payload={"id": "12345", "status": "open"})
        result = _gateway(session).place_order("BTC_USDT", "buy", "limit", 0.5, 100.0)
        self.assertTrue(result.accepted)
        self.assertEqual(result.order_id, "12345")
        call = session.calls[0]
        body = json.loads(call["data"])
        self.assertEqual(body, {"currency_pair": "BTC_USDT", "side": "buy", "type": "limit",
                                "amount": "0.5", "price": "100.0"})
        headers = call["headers"]
        expected = sign_request("s", "POST", "/api/v4/spot/orders", "", call["data"], headers["Timestamp"])
        self.assertEqual(headers["SIGN"], expected)
        self.assertEqual(headers["KEY"], "k")

    def test_answer_without_id_is_a_rejection(self) -> None:
        session = FakeSession(payload={"label": "BALANCE_NOT_ENOUGH", "message": "Not enough balance"})
        result = _gateway(session).place_order("BTC_USDT", "sell", "market", 1.0, 100.0)
        self.assertFalse(result.accepted)
        self.assertNotIn("price", json.loads(session.calls[0]["data"]))

    def test_transport_and_http_errors_are_unavailable(self) -> None:
        with self.assertRaises(GatewayUnavailable) as ctx:
            _gateway(FakeSession(error=requests.ConnectionError("refused"))).get_available_balance("USDT")
        self.assertEqual(ctx.exception.action, "get_available_balance")
        with self.assertRaises(GatewayUnavailable):
            _gateway(FakeSession(payload={"label": "INVALID_KEY"}, status_code=401)).get_available_balance("USDT")

    def test_balance_lookup(self) -> None:
        session = FakeSession(payload=[{"currency": "USDT", "available": "812.5", "locked": "0"}])
        self.assertEqual(_gateway(session).get_available_balance("USDT"), 812.5)
        self.assertEqual(_gateway(session).get_available_balance("BTC"), 0.0)

    def test_order_lookup_and_cancel_use_the_order_path(self) -> None:
        session = FakeSession(payload={"id": "77", "status": "cancelled"})
        gateway = _gateway(session)
        gateway.get_order("77", "BTC_USDT")
        gateway.cancel_order("77", "BTC_USDT")
        self.assertEqual([c["method"] for c in session.calls], ["GET", "DELETE"])
        self.assertTrue(all("/spot/orders/77?currency_pair=BTC_USDT" in c["url"] for c in session.calls))


class TestPaperGateway(unittest.TestCase):
    def test_fills_move_both_balances(self) -> None:
        paper = PaperGateway(FakeGateway(closes=[100.0, 110.0]), {"USDT": 1000.0})
        paper.get_price_series("BTC_USDT", "1d", 2)
        buy = paper.place_order("BTC_USDT", "buy", "limit", 2.0, 100.0)
        self.assertTrue(buy.accepted)
        self.assertEqual(paper.get_available_balance("USDT"), 800.0)
        self.assertEqual(paper.get_available_balance("BTC"), 2.0)
        sell = paper.place_order("BTC_USDT", "sell", "market", 2.0)
        self.assertNotEqual(sell.order_id, buy.order_id)
        self.assertEqual(paper.get_available_balance("USDT"), 1020.0)
        self.assertEqual(paper.get_available_balance("BTC"), 0.0)

    def test_zero_amount_is_refused(self) -> None:
        paper = PaperGateway(FakeGateway(), {"USDT": 1000.0})
        self.assertFalse(paper.place_order("BTC_USDT", "buy", "limit", 0.0, 100.0).accepted)


if __name__ == '__main__':
    unittest.main()
