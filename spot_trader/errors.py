"""
Error taxonomy for the trading loop.

Indicator edge cases never raise; they degrade to empty series and a
``HOLD`` signal.  Gateway, ledger and usage errors are raised to the
caller with the symbol, the attempted action and a reason so that the
scheduler invoking the loop can log or alert.
"""

from __future__ import annotations

from typing import Any, Optional


class TradingError(Exception):
    """Base class for all errors raised by the trading loop."""


class InvalidConfiguration(TradingError):
    """Raised at start-up when a risk parameter or the symbol is unusable."""


class InsufficientData(TradingError):
    """Raised when a price series is shorter than a required lookback."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(f"need at least {required} prices, got {available}")
        self.required = required
        self.available = available


class SessionInactive(TradingError):
    """Raised when an operation needs an active session and there is none."""


class TickInProgress(TradingError):
    """Raised when another tick already holds the single-flight lock."""


class GatewayError(TradingError):
    """Base class for failures talking to the exchange."""

    def __init__(self, action: str, symbol: str, reason: str) -> None:
        super().__init__(f"{action} on {symbol} failed: {reason}")
        self.action = action
        self.symbol = symbol
        self.reason = reason


class GatewayUnavailable(GatewayError):
    """Transport-level failure: the exchange could not be reached or answered garbage."""


class OrderRejected(GatewayError):
    """The exchange answered an order request without an order identifier."""

    def __init__(
        self,
        action: str,
        symbol: str,
        reason: str,
        response: Optional[Any] = None,
    ) -> None:
        super().__init__(action, symbol, reason)
        self.response = response
