"""
Trading session controller.

The controller is the caller-facing surface of the trading loop.  It
starts and stops sessions, runs one tick of the
indicator → signal → position pipeline per `execute_trading()` call and
layers session-level risk control on top of the per-position
thresholds: whenever a position is closed the quote balance is
re-read and, if the session as a whole has gained or lost more than
its thresholds, the session is stopped.

All mutable state lives in a `TraderState`.  State is changed only
after the exchange has accepted an order or answered a balance
request, so a tick aborted by a gateway failure leaves it as it was.
The controller does not guard against concurrent ticks; callers must
run at most one tick per symbol at a time (see
`utils.persistence.single_flight`).
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
import logging
from typing import Callable, Optional
import uuid

from ..config.schema import Config
from ..data.gateway import ExchangeGateway, closes_from_frame
from ..errors import GatewayUnavailable, OrderRejected, SessionInactive
from ..strategy.signals import SignalGenerator
from ..utils.timeutils import is_new_day, utcnow
from .ledger import Ledger
from .models import (
    Position,
    SessionStatus,
    Side,
    TickResult,
    TraderState,
    TradingSession,
)
from .position_manager import MANUAL, PROFIT_TARGET, STOP_LOSS, PositionManager


logger = logging.getLogger(__name__)


def _new_session_id() -> str:
    return uuid.uuid4().hex


class SessionController:
    """Drive trading sessions for a single symbol.

    Parameters
    ----------
    config : Config
        Validated configuration.
    gateway : ExchangeGateway
        Source of prices and balances, and where orders are sent.
    ledger : Ledger
        Where sessions and fills are recorded.
    state : TraderState, optional
        State restored from a previous run.  A fresh flat state is used
        when omitted.
    clock : callable, optional
        Returns the current aware datetime; injectable for tests.
    on_change : callable, optional
        Called with the state after every change, e.g. to persist it.
    """

    def __init__(
        self,
        config: Config,
        gateway: ExchangeGateway,
        ledger: Ledger,
        state: Optional[TraderState] = None,
        clock: Callable[[], datetime] = utcnow,
        on_change: Optional[Callable[[TraderState], None]] = None,
        id_factory: Callable[[], str] = _new_session_id,
    ) -> None:
        self.config = config
        self.gateway = gateway
        self.ledger = ledger
        self.clock = clock
        self.on_change = on_change
        self.id_factory = id_factory
        self.signals = SignalGenerator(config.indicators)
        self.positions = PositionManager(config, gateway, clock)
        self.state = state or TraderState(position=Position.flat(config.symbol))
        if self.state.last_check_time is None:
            self.state.last_check_time = clock()

    # -- caller surface -------------------------------------------------

    def get_current_session(self) -> Optional[TradingSession]:
        return self.state.session

    def is_session_active(self) -> bool:
        return self.state.session is not None and self.state.session.is_active

    def start_session(self) -> TradingSession:
        """Open a new session with the current quote balance as its baseline.

        If a session is already active it is returned unchanged.
        """
        if self.is_session_active():
            logger.warning("Session %s is already active on %s", self.state.session.id, self.config.symbol)
            return self.state.session

        balance = self.gateway.get_available_balance(self.config.quote_currency)
        session = TradingSession(
            id=self.id_factory(),
            symbol=self.config.symbol,
            initial_balance=balance,
            current_balance=balance,
            profit_threshold=self.config.profit_threshold,
            loss_threshold=self.config.loss_threshold,
            start_time=self.clock(),
        )
        self.ledger.save_session(session)
        self.state.session = session
        self.state.position = Position.flat(self.config.symbol)
        self._changed()
        logger.info("Session %s started on %s with %s %s",
                    session.id, session.symbol, balance, self.config.quote_currency)
        return session

    def stop_session(self, reason: str = MANUAL, close_reason: str = MANUAL) -> TradingSession:
        """Close any open position, settle the session and mark it closed.

        Raises
        ------
        SessionInactive
            If there is no active session; a closed session is never
            settled twice.
        OrderRejected
            If the closing order is refused; the session stays active.
        """
        session = self._require_active('stop_session')
        if not self.state.position.is_flat:
            self._close(close_reason, self._latest_price(), auto_stop=False)
            session = self.state.session

        balance = self.gateway.get_available_balance(self.config.quote_currency)
        profit = balance - session.initial_balance
        profit_pct = profit / session.initial_balance * 100 if session.initial_balance else 0.0
        closed = replace(
            session,
            current_balance=balance,
            profit_amount=profit,
            profit_percentage=profit_pct,
            status=SessionStatus.CLOSED,
            end_time=self.clock(),
            stop_reason=reason,
        )
        self.ledger.save_session(closed)
        self.state.session = closed
        self._changed()
        logger.info("Session %s stopped: balance=%s %s, profit=%s (%.2f%%), reason=%s",
                    closed.id, balance, self.config.quote_currency, profit, profit_pct, reason)
        return closed

    def execute_trading(self) -> TickResult:
        """Run one tick: fetch prices, compute the signal and act on it.

        Raises
        ------
        SessionInactive
            If no session is active.
        GatewayUnavailable
            If the exchange cannot be reached; nothing is changed.
        """
        self._require_active('execute_trading')
        candles = self.gateway.get_price_series(
            self.config.symbol, self.config.interval, self.config.history_limit
        )
        closes = closes_from_frame(candles)
        if not closes:
            logger.warning("No price data for %s; holding", self.config.symbol)
            return TickResult('hold', details={'reason': 'no_price_data'})

        price = closes[-1]
        signal = self.signals.generate(closes)
        decision = self.positions.decide(self.state.position, signal, price)
        details = {'signal': signal.value, 'price': price}
        logger.debug("Tick on %s: price=%s signal=%s position=%s",
                     self.config.symbol, price, signal.value, self.state.position.side.value)

        if decision.is_hold:
            return TickResult('hold', details=details)

        action = 'close_position'
        try:
            if decision.close_reason is not None:
                details['close_reason'] = decision.close_reason
                self._close(decision.close_reason, price)
                if decision.forced_exit or not self.is_session_active():
                    details['session_active'] = self.is_session_active()
                    return TickResult('close_position', details=details)
            action = 'buy' if decision.open_side is Side.LONG else 'sell'
            self._open(decision.open_side, price)
        except OrderRejected as exc:
            details['error'] = exc.reason
            return TickResult(action, status='rejected', details=details)
        details['quantity'] = self.state.position.quantity
        return TickResult(action, details=details)

    def check_and_restart(self, now: Optional[datetime] = None) -> bool:
        """Start a new session if a calendar day has passed and none is active.

        Days are compared in the configured timezone.  The check time is
        recorded on every call.  Returns whether a session was started.
        """
        now = now or self.clock()
        restarted = False
        if is_new_day(self.state.last_check_time, now, self.config.timezone) and not self.is_session_active():
            session = self.start_session()
            logger.info("New day: session %s restarted on %s", session.id, self.config.symbol)
            restarted = True
        self.state.last_check_time = now
        self._changed()
        return restarted

    # -- internals ------------------------------------------------------

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self.state)

    def _require_active(self, action: str) -> TradingSession:
        if not self.is_session_active():
            raise SessionInactive(f"{action} on {self.config.symbol} needs an active session")
        return self.state.session

    def _latest_price(self) -> float:
        candles = self.gateway.get_price_series(self.config.symbol, self.config.price_interval, 1)
        closes = closes_from_frame(candles)
        if not closes:
            raise GatewayUnavailable('latest_price', self.config.symbol, 'no candles returned')
        return closes[-1]

    def _open(self, side: Side, price: float) -> None:
        position, transaction = self.positions.open_position(self.state.session, side, price)
        self.ledger.append_transaction(transaction)
        self.state.position = position
        self._changed()

    def _close(self, reason: str, price: float, auto_stop: bool = True) -> None:
        position, transaction = self.positions.close_position(
            self.state.session, self.state.position, price, reason
        )
        self.ledger.append_transaction(transaction)
        self.state.position = position
        self._changed()

        balance = self.gateway.get_available_balance(self.config.quote_currency)
        session = replace(self.state.session, current_balance=balance)
        self.ledger.save_session(session)
        self.state.session = session
        self._changed()

        if not auto_stop:
            return
        profit_pct = session.cumulative_profit_pct()
        if profit_pct >= session.profit_threshold:
            logger.info("Session %s reached its profit target (%.2f%%)", session.id, profit_pct)
            self.stop_session(PROFIT_TARGET)
        elif profit_pct <= -session.loss_threshold:
            logger.info("Session %s hit its loss limit (%.2f%%)", session.id, profit_pct)
            self.stop_session(STOP_LOSS)
