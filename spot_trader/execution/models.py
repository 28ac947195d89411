"""
Position, session and transaction models.

These dataclasses represent the objects passed between the strategy,
the position manager and the session controller.  Keeping them in a
separate module improves readability and makes unit testing easier.
Each model knows how to turn itself into a JSON-friendly dictionary
and back so the ledger and the state file can persist them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class Signal(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class Side(str, Enum):
    FLAT = "flat"
    LONG = "long"
    SHORT = "short"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Position:
    """The single position held for a symbol.  ``entry_price`` and
    ``quantity`` are zero while flat."""
    symbol: str
    side: Side = Side.FLAT
    entry_price: float = 0.0
    quantity: float = 0.0
    opened_at: Optional[datetime] = None

    @classmethod
    def flat(cls, symbol: str) -> "Position":
        return cls(symbol=symbol)

    @property
    def is_flat(self) -> bool:
        return self.side is Side.FLAT

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'side': self.side.value,
            'entry_price': self.entry_price,
            'quantity': self.quantity,
            'opened_at': _ts(self.opened_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(
            symbol=data['symbol'],
            side=Side(data.get('side', Side.FLAT.value)),
            entry_price=float(data.get('entry_price', 0.0)),
            quantity=float(data.get('quantity', 0.0)),
            opened_at=_parse_ts(data.get('opened_at')),
        )


@dataclass
class TradingSession:
    """A bounded trading episode with its own starting balance and thresholds.

    ``current_balance`` is a snapshot refreshed at start, after every
    close and at stop.  ``profit_amount`` and ``profit_percentage`` are
    only filled once the session is closed.
    """
    id: str
    symbol: str
    initial_balance: float
    current_balance: float
    profit_threshold: float
    loss_threshold: float
    start_time: datetime
    status: SessionStatus = SessionStatus.ACTIVE
    end_time: Optional[datetime] = None
    stop_reason: Optional[str] = None
    profit_amount: Optional[float] = None
    profit_percentage: Optional[float] = None

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE

    def cumulative_profit_pct(self) -> float:
        """Profit of the current balance snapshot relative to the start, in percent."""
        if self.initial_balance == 0:
            return 0.0
        return (self.current_balance - self.initial_balance) / self.initial_balance * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'symbol': self.symbol,
            'initial_balance': self.initial_balance,
            'current_balance': self.current_balance,
            'profit_threshold': self.profit_threshold,
            'loss_threshold': self.loss_threshold,
            'start_time': _ts(self.start_time),
            'status': self.status.value,
            'end_time': _ts(self.end_time),
            'stop_reason': self.stop_reason,
            'profit_amount': self.profit_amount,
            'profit_percentage': self.profit_percentage,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TradingSession":
        return cls(
            id=str(data['id']),
            symbol=data['symbol'],
            initial_balance=float(data['initial_balance']),
            current_balance=float(data['current_balance']),
            profit_threshold=float(data['profit_threshold']),
            loss_threshold=float(data['loss_threshold']),
            start_time=_parse_ts(data['start_time']),
            status=SessionStatus(data.get('status', SessionStatus.ACTIVE.value)),
            end_time=_parse_ts(data.get('end_time')),
            stop_reason=data.get('stop_reason'),
            profit_amount=data.get('profit_amount'),
            profit_percentage=data.get('profit_percentage'),
        )


@dataclass(frozen=True)
class TradeTransaction:
    """Represents one filled order.  Never mutated after creation."""
    session_id: str
    order_id: str
    type: str  # 'buy' or 'sell'
    price: float
    amount: float
    total: float
    executed_at: datetime
    status: str = "executed"
    profit_percentage: Optional[float] = None
    close_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'order_id': self.order_id,
            'type': self.type,
            'price': self.price,
            'amount': self.amount,
            'total': self.total,
            'executed_at': _ts(self.executed_at),
            'status': self.status,
            'profit_percentage': self.profit_percentage,
            'close_reason': self.close_reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TradeTransaction":
        return cls(
            session_id=str(data['session_id']),
            order_id=str(data['order_id']),
            type=data['type'],
            price=float(data['price']),
            amount=float(data['amount']),
            total=float(data['total']),
            executed_at=_parse_ts(data['executed_at']),
            status=data.get('status', 'executed'),
            profit_percentage=data.get('profit_percentage'),
            close_reason=data.get('close_reason'),
        )


@dataclass
class TraderState:
    """Everything the controller carries from one tick to the next."""
    position: Position
    session: Optional[TradingSession] = None
    last_check_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'position': self.position.to_dict(),
            'session': self.session.to_dict() if self.session is not None else None,
            'last_check_time': _ts(self.last_check_time),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TraderState":
        session = data.get('session')
        return cls(
            position=Position.from_dict(data['position']),
            session=TradingSession.from_dict(session) if session else None,
            last_check_time=_parse_ts(data.get('last_check_time')),
        )


@dataclass
class TickResult:
    """Outcome of one tick.

    ``action`` is one of ``buy``, ``sell``, ``close_position`` or ``hold``;
    ``status`` is ``success`` or ``rejected`` (the exchange refused the order).
    """
    action: str
    status: str = "success"
    details: Dict[str, Any] = field(default_factory=dict)
