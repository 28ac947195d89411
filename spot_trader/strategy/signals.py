"""
Momentum/trend signal generation.

The generator combines a fast/slow SMA crossover, RSI overbought and
oversold levels and MACD histogram zero-crossings into a single
``BUY``, ``SELL`` or ``HOLD`` decision.  Only the two most recent
values of each paired series (and the latest RSI) are used, read by
explicit indexing from the end of each series.  The generator holds
no state between calls.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ..config.schema import IndicatorConfig
from ..execution.models import Signal
from .indicators import IndicatorSet, compute_indicators


logger = logging.getLogger(__name__)


def decide(
    prev_fast: float,
    last_fast: float,
    prev_slow: float,
    last_slow: float,
    last_rsi: float,
    prev_hist: float,
    last_hist: float,
    overbought: float = 70.0,
    oversold: float = 30.0,
) -> Signal:
    """Turn indicator snapshots into a signal.

    ``BUY`` when the fast SMA crosses above the slow one, RSI is
    oversold or the MACD histogram turns positive, unless RSI is
    overbought.  ``SELL`` is the mirror image.  A buy trigger is checked
    first; an overbought RSI blocks it and an oversold RSI blocks a sell,
    so the two outcomes never overlap.
    """
    cross_above = prev_fast <= prev_slow and last_fast > last_slow
    cross_below = prev_fast >= prev_slow and last_fast < last_slow
    is_overbought = last_rsi > overbought
    is_oversold = last_rsi < oversold
    macd_positive_cross = prev_hist <= 0 and last_hist > 0
    macd_negative_cross = prev_hist >= 0 and last_hist < 0

    if (cross_above or is_oversold or macd_positive_cross) and not is_overbought:
        return Signal.BUY
    if (cross_below or is_overbought or macd_negative_cross) and not is_oversold:
        return Signal.SELL
    return Signal.HOLD


class SignalGenerator:
    """Generate trading signals from a close-price series."""

    def __init__(self, config: IndicatorConfig) -> None:
        self.config = config

    def evaluate(self, indicators: IndicatorSet) -> Signal:
        """Evaluate precomputed indicators.

        Returns ``HOLD`` when any paired series has fewer than two values
        or no RSI value exists yet.
        """
        fast = indicators.sma_fast
        slow = indicators.sma_slow
        hist = indicators.macd_histogram
        if len(fast) < 2 or len(slow) < 2 or len(hist) < 2 or not indicators.rsi:
            logger.debug(
                "Not enough indicator history (fast=%d, slow=%d, hist=%d, rsi=%d); holding",
                len(fast), len(slow), len(hist), len(indicators.rsi),
            )
            return Signal.HOLD
        return decide(
            prev_fast=fast[-2],
            last_fast=fast[-1],
            prev_slow=slow[-2],
            last_slow=slow[-1],
            last_rsi=indicators.rsi[-1],
            prev_hist=hist[-2],
            last_hist=hist[-1],
            overbought=self.config.rsi_overbought,
            oversold=self.config.rsi_oversold,
        )

    def generate(self, closes: Sequence[float]) -> Signal:
        """Compute indicators for `closes` and evaluate them."""
        return self.evaluate(compute_indicators(closes, self.config))
