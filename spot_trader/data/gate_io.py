"""
Gate.io spot REST gateway.

This module wraps the Gate.io v4 REST API with `requests` to fetch
candlesticks and balances and to place spot orders for live trading.
Private endpoints are signed with the API secret as described by the
exchange: ``HMAC-SHA512`` over the method, path, query string, the
SHA-512 of the body and a timestamp.

Requests are never retried here.  Any transport error, HTTP error or
undecodable answer raises `GatewayUnavailable`; retrying is left to
whoever schedules the next tick.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode, urlsplit
import pandas as pd
import requests

from ..config.schema import GatewayConfig
from ..errors import GatewayUnavailable
from .gateway import ExchangeGateway, OrderResult, OHLCV_COLUMNS


logger = logging.getLogger(__name__)


def sign_request(
    secret: str,
    method: str,
    path: str,
    query_string: str,
    body: str,
    timestamp: str,
) -> str:
    """Compute the ``SIGN`` header for a private Gate.io request.

    Parameters
    ----------
    secret : str
        API secret.
    method : str
        Upper-case HTTP method.
    path : str
        Full request path including the ``/api/v4`` prefix.
    query_string : str
        URL-encoded query string exactly as sent, without ``?``.
    body : str
        Request payload exactly as sent (empty string for none).
    timestamp : str
        Unix time in seconds, also sent in the ``Timestamp`` header.
    """
    body_hash = hashlib.sha512(body.encode("utf-8")).hexdigest()
    payload = "\n".join([method, path, query_string, body_hash, timestamp])
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha512).hexdigest()


def candles_to_frame(rows: List[List[Any]]) -> pd.DataFrame:
    """Turn Gate.io candlestick rows into an OHLCV DataFrame.

    Gate.io returns ``[timestamp, quote_volume, close, high, low, open,
    base_volume, window_closed]`` per candle, timestamps in seconds.
    """
    if not rows:
        return pd.DataFrame(columns=OHLCV_COLUMNS)
    df = pd.DataFrame(
        [
            {
                "time": int(row[0]),
                "open": row[5],
                "high": row[3],
                "low": row[4],
                "close": row[2],
                "volume": row[6] if len(row) > 6 else row[1],
            }
            for row in rows
        ]
    )
    df["time"] = pd.to_datetime(df["time"], unit="s", utc=True)
    for column in OHLCV_COLUMNS:
        df[column] = pd.to_numeric(df[column], errors="coerce").astype(float)
    df = df.set_index("time").sort_index()
    return df[OHLCV_COLUMNS]


class GateIOGateway(ExchangeGateway):
    """Live gateway talking to the Gate.io spot API."""

    def __init__(self, config: GatewayConfig, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.base_path = urlsplit(self.base_url).path
        self.session = session or requests.Session()

    def _headers(
        self,
        method: str,
        endpoint: str,
        query_string: str,
        body: str,
        auth: bool,
    ) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if auth:
            timestamp = str(int(time.time()))
            headers.update(
                {
                    "KEY": self.config.api_key,
                    "Timestamp": timestamp,
                    "SIGN": sign_request(
                        self.config.api_secret,
                        method,
                        f"{self.base_path}{endpoint}",
                        query_string,
                        body,
                        timestamp,
                    ),
                }
            )
        return headers

    def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
        auth: bool = False,
        action: str = "request",
        symbol: str = "-",
    ) -> Any:
        """Send one request and return the decoded JSON answer.

        Raises
        ------
        GatewayUnavailable
            On connection errors, timeouts, non-2xx answers and invalid
            JSON.
        """
        method = method.upper()
        query_string = urlencode(params or {})
        payload = json.dumps(body) if body else ""
        url = f"{self.base_url}{endpoint}"
        if query_string:
            url = f"{url}?{query_string}"
        headers = self._headers(method, endpoint, query_string, payload, auth)
        try:
            response = self.session.request(
                method,
                url,
                data=payload or None,
                headers=headers,
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as exc:
            text = exc.response.text if exc.response is not None else str(exc)
            logger.error("%s %s failed: %s", method, endpoint, text)
            raise GatewayUnavailable(action, symbol, f"HTTP error: {text}") from exc
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, endpoint, exc)
            raise GatewayUnavailable(action, symbol, str(exc)) from exc
        except ValueError as exc:
            raise GatewayUnavailable(action, symbol, f"invalid JSON answer: {exc}") from exc

    def get_price_series(self, symbol: str, interval: str, limit: int) -> pd.DataFrame:
        rows = self.request(
            "GET",
            "/spot/candlesticks",
            params={"currency_pair": symbol, "interval": interval, "limit": limit},
            action="get_price_series",
            symbol=symbol,
        )
        if not isinstance(rows, list):
            raise GatewayUnavailable("get_price_series", symbol, f"unexpected answer: {rows!r}")
        return candles_to_frame(rows)

    def get_available_balance(self, currency: str) -> float:
        accounts = self.request(
            "GET",
            "/spot/accounts",
            params={"currency": currency},
            auth=True,
            action="get_available_balance",
            symbol=currency,
        )
        if not isinstance(accounts, list):
            raise GatewayUnavailable("get_available_balance", currency, f"unexpected answer: {accounts!r}")
        for account in accounts:
            if account.get("currency") == currency:
                return float(account.get("available", 0.0))
        return 0.0

    def place_order(
        self,
        symbol: str,
        side: str,
        order_type: str,
        amount: float,
        price: Optional[float] = None,
    ) -> OrderResult:
        order: Dict[str, Any] = {
            "currency_pair": symbol,
            "side": side,
            "type": order_type,
            "amount": str(amount),
        }
        if price is not None and order_type == "limit":
            order["price"] = str(price)
        answer = self.request(
            "POST",
            "/spot/orders",
            body=order,
            auth=True,
            action=f"place_{side}_order",
            symbol=symbol,
        )
        if not isinstance(answer, dict):
            return OrderResult(order_id=None, raw={"answer": answer})
        order_id = answer.get("id")
        return OrderResult(order_id=str(order_id) if order_id else None, raw=answer)

    def get_order(self, order_id: str, symbol: str) -> Dict[str, Any]:
        """Fetch an order's current state."""
        return self.request(
            "GET",
            f"/spot/orders/{order_id}",
            params={"currency_pair": symbol},
            auth=True,
            action="get_order",
            symbol=symbol,
        )

    def cancel_order(self, order_id: str, symbol: str) -> Dict[str, Any]:
        """Cancel an open order."""
        return self.request(
            "DELETE",
            f"/spot/orders/{order_id}",
            params={"currency_pair": symbol},
            auth=True,
            action="cancel_order",
            symbol=symbol,
        )
