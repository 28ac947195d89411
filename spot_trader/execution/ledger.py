"""
Session and transaction ledger.

The session controller records sessions and fills through the narrow
`Ledger` interface and never touches a storage engine directly.  Two
implementations are provided: `InMemoryLedger` for tests and
short-lived runs, and `JsonLedger` which keeps everything in a single
JSON document on disk.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..utils.persistence import load_state, save_state
from .models import TradeTransaction, TradingSession


class Ledger(ABC):
    """Durable, ordered record of sessions and fills."""

    @abstractmethod
    def save_session(self, session: TradingSession) -> None:
        """Create or replace the stored copy of `session`."""

    @abstractmethod
    def append_transaction(self, transaction: TradeTransaction) -> None:
        """Append a fill.  Existing transactions are never modified."""

    @abstractmethod
    def load_session(self, session_id: str) -> Optional[TradingSession]:
        """Return the stored session or `None`."""

    @abstractmethod
    def list_transactions(self, session_id: str) -> List[TradeTransaction]:
        """Return the fills of a session in the order they were appended."""

    def latest_session(self, symbol: str) -> Optional[TradingSession]:
        """Return the most recently started session for `symbol`."""
        sessions = [s for s in self.list_sessions() if s.symbol == symbol]
        if not sessions:
            return None
        return max(sessions, key=lambda s: s.start_time)

    @abstractmethod
    def list_sessions(self) -> List[TradingSession]:
        """Return every stored session."""


class InMemoryLedger(Ledger):
    def __init__(self) -> None:
        self.sessions: Dict[str, TradingSession] = {}
        self.transactions: List[TradeTransaction] = []

    def save_session(self, session: TradingSession) -> None:
        self.sessions[session.id] = TradingSession.from_dict(session.to_dict())

    def append_transaction(self, transaction: TradeTransaction) -> None:
        self.transactions.append(transaction)

    def load_session(self, session_id: str) -> Optional[TradingSession]:
        session = self.sessions.get(session_id)
        return TradingSession.from_dict(session.to_dict()) if session else None

    def list_transactions(self, session_id: str) -> List[TradeTransaction]:
        return [t for t in self.transactions if t.session_id == session_id]

    def list_sessions(self) -> List[TradingSession]:
        return list(self.sessions.values())


class JsonLedger(Ledger):
    """Ledger stored as ``{"sessions": {...}, "transactions": [...]}`` in one file.

    The file is re-read on every call so that separate processes
    driving the same ledger see each other's writes.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    def _load(self) -> Dict:
        data = load_state(self.path) or {}
        data.setdefault('sessions', {})
        data.setdefault('transactions', [])
        return data

    def save_session(self, session: TradingSession) -> None:
        data = self._load()
        data['sessions'][session.id] = session.to_dict()
        save_state(self.path, data)

    def append_transaction(self, transaction: TradeTransaction) -> None:
        data = self._load()
        data['transactions'].append(transaction.to_dict())
        save_state(self.path, data)

    def load_session(self, session_id: str) -> Optional[TradingSession]:
        raw = self._load()['sessions'].get(session_id)
        return TradingSession.from_dict(raw) if raw else None

    def list_transactions(self, session_id: str) -> List[TradeTransaction]:
        return [
            TradeTransaction.from_dict(raw)
            for raw in self._load()['transactions']
            if str(raw.get('session_id')) == session_id
        ]

    def list_sessions(self) -> List[TradingSession]:
        return [TradingSession.from_dict(raw) for raw in self._load()['sessions'].values()]
