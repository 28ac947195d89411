"""
Single-position state machine.

A symbol is either flat, long or short.  On every tick the manager
first checks whether an open position has reached the profit target
or the stop loss; only if it has not does the latest signal get a
chance to open a position or flip an existing one.  Deciding is pure
(`decide`); acting (`open_position`, `close_position`) places orders
through the gateway and returns the new position together with the
fill record.  A refused order raises `OrderRejected` and leaves the
caller's position untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN
import logging
from typing import Callable, Optional, Tuple
from datetime import datetime

from ..config.schema import Config
from ..data.gateway import ExchangeGateway
from ..errors import OrderRejected
from ..utils.timeutils import utcnow
from .models import Position, Side, Signal, TradeTransaction, TradingSession


logger = logging.getLogger(__name__)

PROFIT_TARGET = 'profit_target'
STOP_LOSS = 'stop_loss'
SIGNAL_CHANGE = 'signal_change'
MANUAL = 'manual'


@dataclass
class Decision:
    """What a tick should do: optionally close, then optionally open."""
    close_reason: Optional[str] = None
    open_side: Optional[Side] = None

    @property
    def forced_exit(self) -> bool:
        return self.close_reason in (PROFIT_TARGET, STOP_LOSS)

    @property
    def is_hold(self) -> bool:
        return self.close_reason is None and self.open_side is None


def price_change_pct(position: Position, price: float) -> float:
    """Move of `price` relative to the entry, in percent, signed in the position's favour."""
    if position.is_flat or not position.entry_price:
        return 0.0
    change = (price - position.entry_price) / position.entry_price * 100
    return change if position.side is Side.LONG else -change


def round_down(amount: float, precision: Optional[int]) -> float:
    """Truncate `amount` to `precision` decimal places (no-op for ``None``)."""
    if precision is None:
        return amount
    quantum = Decimal(1).scaleb(-int(precision))
    return float(Decimal(str(amount)).quantize(quantum, rounding=ROUND_DOWN))


class PositionManager:
    """Decide on and carry out position changes for one symbol."""

    def __init__(
        self,
        config: Config,
        gateway: ExchangeGateway,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config
        self.gateway = gateway
        self.clock = clock

    def forced_exit_reason(self, position: Position, price: float) -> Optional[str]:
        """Return ``profit_target`` or ``stop_loss`` if a threshold is reached.

        Both comparisons are inclusive: a move of exactly the threshold
        closes the position.
        """
        if position.is_flat:
            return None
        change = price_change_pct(position, price)
        if change >= self.config.profit_threshold:
            return PROFIT_TARGET
        if change <= -self.config.loss_threshold:
            return STOP_LOSS
        return None

    def decide(self, position: Position, signal: Signal, price: float) -> Decision:
        """Work out the tick's action without side effects."""
        reason = self.forced_exit_reason(position, price)
        if reason is not None:
            return Decision(close_reason=reason)

        if signal is Signal.BUY and position.side is not Side.LONG:
            target = Side.LONG
        elif signal is Signal.SELL and position.side is not Side.SHORT:
            target = Side.SHORT
        else:
            return Decision()
        return Decision(
            close_reason=None if position.is_flat else SIGNAL_CHANGE,
            open_side=target,
        )

    def order_amount(self, quote_balance: float, price: float) -> float:
        """Size a new position from the available quote balance."""
        if price <= 0 or quote_balance <= 0:
            return 0.0
        amount = quote_balance * self.config.sizing.balance_fraction / price
        return round_down(amount, self.config.sizing.amount_precision)

    def _place(self, side: str, amount: float, price: float, action: str):
        order_type = self.config.sizing.order_type
        result = self.gateway.place_order(
            self.config.symbol,
            side,
            order_type,
            amount,
            price if order_type == 'limit' else None,
        )
        if not result.accepted:
            logger.error(
                "%s on %s rejected (side=%s, amount=%s, price=%s): %s",
                action, self.config.symbol, side, amount, price, result.raw,
            )
            raise OrderRejected(action, self.config.symbol, "no order id in exchange answer", result.raw)
        return result

    def open_position(
        self,
        session: TradingSession,
        side: Side,
        price: float,
    ) -> Tuple[Position, TradeTransaction]:
        """Open a long (buy) or short (sell) position at `price`.

        Raises
        ------
        OrderRejected
            If the sized amount is zero or the exchange returns no order id.
        GatewayUnavailable
            If the balance lookup or the order request cannot be completed.
        """
        action = f"open_{side.value}"
        quote_balance = self.gateway.get_available_balance(self.config.quote_currency)
        amount = self.order_amount(quote_balance, price)
        if amount <= 0:
            logger.error(
                "Cannot open %s on %s: order size is zero (balance=%s %s, price=%s)",
                side.value, self.config.symbol, quote_balance, self.config.quote_currency, price,
            )
            raise OrderRejected(action, self.config.symbol, "order size rounds to zero")

        order_side = 'buy' if side is Side.LONG else 'sell'
        result = self._place(order_side, amount, price, action)
        now = self.clock()
        position = Position(
            symbol=self.config.symbol,
            side=side,
            entry_price=price,
            quantity=amount,
            opened_at=now,
        )
        transaction = TradeTransaction(
            session_id=session.id,
            order_id=result.order_id,
            type=order_side,
            price=price,
            amount=amount,
            total=price * amount,
            executed_at=now,
        )
        logger.info("Opened %s on %s: price=%s amount=%s order=%s",
                    side.value, self.config.symbol, price, amount, result.order_id)
        return position, transaction

    def close_position(
        self,
        session: TradingSession,
        position: Position,
        price: float,
        reason: str,
    ) -> Tuple[Position, TradeTransaction]:
        """Liquidate the whole tracked quantity of `position` at `price`.

        Returns a flat position and the closing fill, which carries the
        position's percentage result and the close reason.
        """
        if position.is_flat:
            raise ValueError(f"no open position on {position.symbol} to close")
        action = f"close_{position.side.value}"
        order_side = 'sell' if position.side is Side.LONG else 'buy'
        result = self._place(order_side, position.quantity, price, action)
        change = price_change_pct(position, price)
        transaction = TradeTransaction(
            session_id=session.id,
            order_id=result.order_id,
            type=order_side,
            price=price,
            amount=position.quantity,
            total=price * position.quantity,
            executed_at=self.clock(),
            profit_percentage=change,
            close_reason=reason,
        )
        logger.info("Closed %s on %s: price=%s amount=%s result=%.2f%% reason=%s order=%s",
                    position.side.value, position.symbol, price, position.quantity,
                    change, reason, result.order_id)
        return Position.flat(position.symbol), transaction
