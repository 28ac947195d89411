import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from spot_trader.errors import TickInProgress
from spot_trader.execution.ledger import JsonLedger
from spot_trader.execution.models import (
    Position,
    SessionStatus,
    Side,
    TradeTransaction,
    TraderState,
    TradingSession,
)
from spot_trader.utils.persistence import load_state, save_state, single_flight
from spot_trader.utils.timeutils import is_new_day

import unittest


START = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def _session(session_id: str, start: datetime) -> TradingSession:
    return TradingSession(
        id=session_id, symbol="BTC_USDT", initial_balance=1000.0, current_balance=1000.0,
        profit_threshold=5.0, loss_threshold=2.0, start_time=start,
    )


class TestJsonLedger(unittest.TestCase):
    def test_sessions_and_transactions_survive_reload(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "ledger.json")
            ledger = JsonLedger(path)
            ledger.save_session(_session("a", START))
            ledger.save_session(_session("b", START + timedelta(days=1)))
            ledger.append_transaction(TradeTransaction(
                session_id="a", order_id="1", type="buy", price=100.0, amount=9.0,
                total=900.0, executed_at=START,
            ))
            ledger.append_transaction(TradeTransaction(
                session_id="a", order_id="2", type="sell", price=103.0, amount=9.0,
                total=927.0, executed_at=START + timedelta(hours=1),
                profit_percentage=3.0, close_reason="signal_change",
            ))
            closed = _session("a", START)
            closed.status = SessionStatus.CLOSED
            closed.stop_reason = "manual"
            ledger.save_session(closed)

            reopened = JsonLedger(path)
            self.assertEqual(reopened.load_session("a").status, SessionStatus.CLOSED)
            self.assertIsNone(reopened.load_session("missing"))
            self.assertEqual([t.order_id for t in reopened.list_transactions("a")], ["1", "2"])
            self.assertEqual(reopened.list_transactions("b"), [])
            self.assertEqual(reopened.latest_session("BTC_USDT").id, "b")
            self.assertIsNone(reopened.latest_session("ETH_USDT"))


class TestStateFile(unittest.TestCase):
    def test_trader_state_round_trips_through_json(self) -> None:
        state = TraderState(
            position=Position(symbol="BTC_USDT", side=Side.SHORT, entry_price=100.0,
                              quantity=2.5, opened_at=START),
            session=_session("a", START),
            last_check_time=START,
        )
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "nested", "state.json")
            self.assertIsNone(load_state(path))
            save_state(path, {"trader": state.to_dict()})
            restored = TraderState.from_dict(load_state(path)["trader"])
        self.assertEqual(restored, state)


class TestSingleFlight(unittest.TestCase):
    def test_second_holder_is_refused_until_release(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with single_flight(tmp, "BTC_USDT") as lock_path:
                self.assertTrue(lock_path.exists())
                with self.assertRaises(TickInProgress):
                    with single_flight(tmp, "BTC_USDT"):
                        pass
                with single_flight(tmp, "ETH_USDT"):
                    pass
            self.assertFalse(lock_path.exists())
            with single_flight(tmp, "BTC_USDT"):
                pass


class TestNewDay(unittest.TestCase):
    def test_day_change_depends_on_timezone(self) -> None:
        late = datetime(2024, 1, 1, 23, 30, tzinfo=timezone.utc)
        early = datetime(2024, 1, 2, 0, 30, tzinfo=timezone.utc)
        self.assertTrue(is_new_day(late, early, "UTC"))
        # both are already Jan 2 in Brussels
        self.assertFalse(is_new_day(late, early, "Europe/Brussels"))
        self.assertTrue(is_new_day(None, early, "UTC"))


if __name__ == '__main__':
    unittest.main()
