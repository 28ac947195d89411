import json
import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pandas as pd

from spot_trader.execution.models import SessionStatus, TradeTransaction, TradingSession
from spot_trader.reporting.metrics import compounded_returns, compute_metrics
from spot_trader.reporting.report import generate_session_report

import unittest


START = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def _fill(order_id: str, hours: int, pct=None, reason=None) -> TradeTransaction:
    return TradeTransaction(
        session_id="s1", order_id=order_id, type="sell" if reason else "buy",
        price=100.0, amount=1.0, total=100.0, executed_at=START + timedelta(hours=hours),
        profit_percentage=pct, close_reason=reason,
    )


FILLS = [
    _fill("1", 0),
    _fill("2", 1, 10.0, "signal_change"),
    _fill("3", 2),
    _fill("4", 3, -5.0, "stop_loss"),
]

SESSION = TradingSession(
    id="s1", symbol="BTC_USDT", initial_balance=1000.0, current_balance=1045.0,
    profit_threshold=5.0, loss_threshold=2.0, start_time=START,
    status=SessionStatus.CLOSED, stop_reason="manual",
)


class TestMetrics(unittest.TestCase):
    def test_only_closing_fills_count_as_trades(self) -> None:
        metrics = compute_metrics(SESSION, FILLS)
        self.assertEqual(metrics['num_fills'], 4)
        self.assertEqual(metrics['num_closed_positions'], 2)
        self.assertAlmostEqual(metrics['win_rate'], 0.5)
        self.assertAlmostEqual(metrics['avg_close_pct'], 2.5)
        self.assertAlmostEqual(metrics['profit_percentage'], 4.5)
        self.assertEqual(metrics['close_reasons'], {'signal_change': 1, 'stop_loss': 1})

    def test_returns_compound(self) -> None:
        curve = compounded_returns(FILLS)
        self.assertAlmostEqual(curve[0], 10.0)
        self.assertAlmostEqual(curve[1], 4.5)

    def test_empty_session(self) -> None:
        metrics = compute_metrics(SESSION, [])
        self.assertEqual(metrics['num_closed_positions'], 0)
        self.assertEqual(metrics['win_rate'], 0.0)


class TestReport(unittest.TestCase):
    def test_report_files_are_written(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            metrics = generate_session_report(SESSION, FILLS, out_dir=tmp)
            self.assertEqual(sorted(os.listdir(tmp)), ['returns.png', 'summary.json', 'transactions.csv'])
            with open(os.path.join(tmp, 'summary.json'), encoding='utf-8') as fh:
                self.assertEqual(json.load(fh)['session_id'], 's1')
            df = pd.read_csv(os.path.join(tmp, 'transactions.csv'))
            self.assertEqual(len(df), 4)
            self.assertEqual(metrics['stop_reason'], 'manual')


if __name__ == '__main__':
    unittest.main()
