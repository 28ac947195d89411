"""
Session performance metrics.

This module summarises a trading session from its fill records.  Only
closing fills carry a result (``profit_percentage``), so the trade
statistics are computed over those.
"""

from __future__ import annotations

from collections import Counter
from typing import List

from ..execution.models import TradeTransaction, TradingSession


def closing_fills(transactions: List[TradeTransaction]) -> List[TradeTransaction]:
    return [t for t in transactions if t.close_reason is not None]


def compounded_returns(transactions: List[TradeTransaction]) -> List[float]:
    """Cumulative compounded return (in percent) after each closing fill."""
    growth = 1.0
    curve: List[float] = []
    for trade in closing_fills(transactions):
        growth *= 1.0 + (trade.profit_percentage or 0.0) / 100.0
        curve.append((growth - 1.0) * 100.0)
    return curve


def compute_metrics(session: TradingSession, transactions: List[TradeTransaction]) -> dict:
    """Compute a set of summary statistics for one session.

    Returns
    -------
    dict
        Session identity and balances, fill counts, win rate, average,
        best and worst closing result, compounded return and a count of
        close reasons.
    """
    closes = closing_fills(transactions)
    results = [t.profit_percentage or 0.0 for t in closes]
    wins = [r for r in results if r > 0]
    curve = compounded_returns(transactions)

    return {
        'session_id': session.id,
        'symbol': session.symbol,
        'status': session.status.value,
        'stop_reason': session.stop_reason,
        'initial_balance': session.initial_balance,
        'current_balance': session.current_balance,
        'profit_amount': session.current_balance - session.initial_balance,
        'profit_percentage': session.cumulative_profit_pct(),
        'num_fills': len(transactions),
        'num_closed_positions': len(closes),
        'win_rate': len(wins) / len(closes) if closes else 0.0,
        'avg_close_pct': sum(results) / len(results) if results else 0.0,
        'best_close_pct': max(results) if results else 0.0,
        'worst_close_pct': min(results) if results else 0.0,
        'compounded_return_pct': curve[-1] if curve else 0.0,
        'close_reasons': dict(Counter(t.close_reason for t in closes)),
    }
