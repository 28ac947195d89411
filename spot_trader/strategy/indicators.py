"""
Technical indicators computed on a close-price series.

Every function takes prices oldest-first and returns a list whose last
element belongs to the most recent price.  Outputs are shorter than
the input by the indicator's lookback; when there is not enough
history the result is an empty list rather than an error, so callers
can treat a short series as "no opinion".

Series of different lengths line up at their *end*: element ``-1`` of
every output refers to the same (latest) close.  MACD relies on this
when it trims the longer series from the front.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence
import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ..config.schema import IndicatorConfig
from ..errors import InsufficientData


def _check_period(period: int) -> None:
    if period <= 0:
        raise ValueError(f"period must be positive, got {period}")


def _windowed_mean(values: np.ndarray, period: int) -> np.ndarray:
    # Each window is averaged on its own so an all-zero window is exactly 0.
    return sliding_window_view(values, period).mean(axis=1)


def require_history(series: Sequence[float], period: int) -> None:
    """Raise `InsufficientData` if `series` is shorter than `period`.

    The indicator functions themselves return empty lists on short
    input; this is for callers that would rather fail than hold.
    """
    if len(series) < period:
        raise InsufficientData(period, len(series))


def sma(series: Sequence[float], period: int) -> List[float]:
    """Simple moving average.

    Returns ``len(series) - period + 1`` values, or an empty list when
    the series is shorter than ``period``.
    """
    _check_period(period)
    if len(series) < period:
        return []
    values = np.asarray(series, dtype=float)
    return _windowed_mean(values, period).tolist()


def ema(series: Sequence[float], period: int) -> List[float]:
    """Exponential moving average seeded with the mean of the first `period` prices.

    The seed is output index 0; each later value follows
    ``ema[i] = (price - ema[i-1]) * k + ema[i-1]`` with
    ``k = 2 / (period + 1)``.  The result has ``len(series) - period + 1``
    values.
    """
    _check_period(period)
    if len(series) < period:
        return []
    k = 2.0 / (period + 1)
    result = [float(sum(series[:period])) / period]
    for price in series[period:]:
        prev = result[-1]
        result.append((float(price) - prev) * k + prev)
    return result


def rsi(series: Sequence[float], period: int) -> List[float]:
    """Relative strength index using simple (not Wilder) averages.

    Gains and losses are taken over consecutive price differences and
    averaged per window of ``period`` differences.  A window without
    losses yields exactly 100.  The result has ``len(series) - period``
    values.
    """
    _check_period(period)
    if len(series) <= period:
        return []
    deltas = np.diff(np.asarray(series, dtype=float))
    avg_gain = _windowed_mean(np.maximum(deltas, 0.0), period)
    avg_loss = _windowed_mean(np.maximum(-deltas, 0.0), period)
    result: List[float] = []
    for gain, loss in zip(avg_gain, avg_loss):
        if loss == 0:
            result.append(100.0)
        else:
            result.append(float(100.0 - 100.0 / (1.0 + gain / loss)))
    return result


@dataclass
class MACDResult:
    """MACD line, signal line and histogram, each aligned at the end."""
    macd: List[float] = field(default_factory=list)
    signal: List[float] = field(default_factory=list)
    histogram: List[float] = field(default_factory=list)


def macd(
    series: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MACDResult:
    """Moving average convergence/divergence.

    The fast EMA is trimmed from the front to the length of the slow EMA
    (``slow - fast`` values) so both end on the latest close; their
    difference is the MACD line, one value per slow-EMA value.  The
    signal line is the EMA of the MACD line, and the MACD line is
    trimmed again by ``len(macd) - len(signal)`` before the histogram
    is taken.  With the default periods the histogram holds
    ``len(series) - slow - signal + 2`` values.
    """
    fast_ema = ema(series, fast)
    slow_ema = ema(series, slow)
    if not fast_ema or not slow_ema:
        return MACDResult()

    offset = len(fast_ema) - len(slow_ema)
    if offset >= 0:
        fast_ema = fast_ema[offset:]
    else:
        # fast period configured longer than the slow one
        slow_ema = slow_ema[-offset:]
    macd_line = [f - s for f, s in zip(fast_ema, slow_ema)]

    signal_line = ema(macd_line, signal)
    if not signal_line:
        return MACDResult(macd=macd_line)
    macd_aligned = macd_line[len(macd_line) - len(signal_line):]
    histogram = [m - s for m, s in zip(macd_aligned, signal_line)]
    return MACDResult(macd=macd_line, signal=signal_line, histogram=histogram)


@dataclass
class IndicatorSet:
    """The indicator series consumed by the signal generator."""
    sma_fast: List[float]
    sma_slow: List[float]
    rsi: List[float]
    macd: MACDResult

    @property
    def macd_histogram(self) -> List[float]:
        return self.macd.histogram


def compute_indicators(closes: Sequence[float], config: IndicatorConfig) -> IndicatorSet:
    """Compute every indicator the strategy uses from a close series."""
    return IndicatorSet(
        sma_fast=sma(closes, config.sma_fast),
        sma_slow=sma(closes, config.sma_slow),
        rsi=rsi(closes, config.rsi_period),
        macd=macd(closes, config.macd_fast, config.macd_slow, config.macd_signal),
    )
