"""
Paper-trading gateway.

Prices come from another gateway (usually the public Gate.io
candlestick endpoint, which needs no credentials); balances and fills
are simulated in memory.  Every order is filled in full at the
requested price, or at the last seen close for market orders.
"""

from __future__ import annotations

import itertools
import logging
from typing import Dict, Optional
import pandas as pd

from .gateway import ExchangeGateway, OrderResult


logger = logging.getLogger(__name__)


class PaperGateway(ExchangeGateway):
    """Simulate an exchange account on top of a real price feed."""

    def __init__(self, price_feed: ExchangeGateway, balances: Optional[Dict[str, float]] = None) -> None:
        self.price_feed = price_feed
        self.balances: Dict[str, float] = dict(balances or {})
        self.last_prices: Dict[str, float] = {}
        self._ids = itertools.count(1)

    def get_price_series(self, symbol: str, interval: str, limit: int) -> pd.DataFrame:
        df = self.price_feed.get_price_series(symbol, interval, limit)
        if not df.empty:
            self.last_prices[symbol] = float(df['close'].iloc[-1])
        return df

    def get_available_balance(self, currency: str) -> float:
        return float(self.balances.get(currency, 0.0))

    def place_order(
        self,
        symbol: str,
        side: str,
        order_type: str,
        amount: float,
        price: Optional[float] = None,
    ) -> OrderResult:
        fill_price = price if price is not None else self.last_prices.get(symbol)
        if fill_price is None or amount <= 0:
            logger.warning("Paper order on %s refused (amount=%s, price=%s)", symbol, amount, fill_price)
            return OrderResult(order_id=None, raw={'label': 'INVALID_PARAM_VALUE'})
        base, quote = symbol.split('_')
        notional = amount * fill_price
        # Spot shorts are simulated by letting the base balance go negative.
        if side == 'buy':
            self.balances[quote] = self.get_available_balance(quote) - notional
            self.balances[base] = self.get_available_balance(base) + amount
        else:
            self.balances[quote] = self.get_available_balance(quote) + notional
            self.balances[base] = self.get_available_balance(base) - amount
        order_id = f"paper-{next(self._ids)}"
        logger.info("Paper %s %s %.8f @ %s (id=%s)", side, symbol, amount, fill_price, order_id)
        return OrderResult(
            order_id=order_id,
            raw={'id': order_id, 'side': side, 'type': order_type, 'amount': amount, 'price': fill_price},
        )
