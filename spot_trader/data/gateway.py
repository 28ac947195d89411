"""
Exchange gateway interface.

The trading loop talks to the exchange only through `ExchangeGateway`.
Transport failures raise `GatewayUnavailable`; an order the exchange
refuses comes back as an `OrderResult` without an ``order_id`` so the
caller can tell "nothing happened" apart from "could not ask".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import pandas as pd

OHLCV_COLUMNS = ["open", "high", "low", "close", "volume"]


@dataclass
class OrderResult:
    """Answer to an order request."""
    order_id: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return bool(self.order_id)


class ExchangeGateway(ABC):
    """Capabilities of the exchange the trading loop depends on."""

    @abstractmethod
    def get_price_series(self, symbol: str, interval: str, limit: int) -> pd.DataFrame:
        """Return up to `limit` candles, oldest first.

        The DataFrame has the columns in `OHLCV_COLUMNS` and a UTC
        ``DatetimeIndex``.
        """
        raise NotImplementedError

    @abstractmethod
    def get_available_balance(self, currency: str) -> float:
        """Return the available (unlocked) balance of `currency`, 0.0 if absent."""
        raise NotImplementedError

    @abstractmethod
    def place_order(
        self,
        symbol: str,
        side: str,
        order_type: str,
        amount: float,
        price: Optional[float] = None,
    ) -> OrderResult:
        """Submit an order.  `side` is ``buy`` or ``sell``."""
        raise NotImplementedError


def closes_from_frame(df: pd.DataFrame) -> List[float]:
    """Extract the close prices of a candle frame, oldest first."""
    if df is None or df.empty:
        return []
    return df.sort_index()['close'].astype(float).tolist()
