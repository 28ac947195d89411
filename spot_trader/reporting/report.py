"""
Session report generation.

This module turns a session's ledger entries into human-readable
artefacts: a CSV of fills, a JSON summary of the session metrics and
a PNG chart of the compounded return after each closed position.
"""

from __future__ import annotations

import os
import json
from typing import List
import pandas as pd
import matplotlib

# Use non-interactive backend for environments without display
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from ..execution.models import TradeTransaction, TradingSession
from .metrics import closing_fills, compounded_returns, compute_metrics


def generate_session_report(
    session: TradingSession,
    transactions: List[TradeTransaction],
    out_dir: str = "results",
) -> dict:
    """Generate report files for a session and return its metrics.

    Creates the output directory if it does not exist and writes the
    following files:

    - `transactions.csv` – every fill of the session
    - `summary.json` – session metrics
    - `returns.png` – compounded return after each closed position
    """
    os.makedirs(out_dir, exist_ok=True)

    df_tx = pd.DataFrame([t.to_dict() for t in transactions])
    df_tx.to_csv(os.path.join(out_dir, 'transactions.csv'), index=False)

    metrics = compute_metrics(session, transactions)
    with open(os.path.join(out_dir, 'summary.json'), 'w', encoding='utf-8') as fh:
        json.dump(metrics, fh, indent=2, ensure_ascii=False)

    curve = compounded_returns(transactions)
    times = [t.executed_at for t in closing_fills(transactions)]
    fig, ax = plt.subplots(figsize=(10, 4))
    if curve:
        ax.plot(pd.to_datetime(times), curve, marker='o', linewidth=1.5)
        ax.axhline(session.profit_threshold, color='green', linestyle='--', linewidth=1)
        ax.axhline(-session.loss_threshold, color='red', linestyle='--', linewidth=1)
        ax.set_title(f'Session {session.id} ({session.symbol})')
        ax.set_xlabel('Time')
        ax.set_ylabel('Compounded return (%)')
        fig.autofmt_xdate()
    fig.tight_layout()
    fig.savefig(os.path.join(out_dir, 'returns.png'))
    plt.close(fig)
    return metrics
