"""
Configuration schema and loader.

This module defines dataclasses that mirror the expected structure of
the YAML configuration file (`config.yaml`).  A helper function
`load_config()` reads a YAML file from disk and returns an instance
of `Config` populated with defaults for any missing fields, then
checks the risk parameters with `validate_config()`.

Risk parameters (symbol and thresholds) are validated rather than
silently defaulted: a configuration with a missing symbol or a
non-positive threshold raises `InvalidConfiguration`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
import os
from typing import Optional, Dict, Any
import yaml

from ..errors import InvalidConfiguration


@dataclass
class IndicatorConfig:
    """Lookback periods and levels used by the signal pipeline.

    Attributes
    ----------
    sma_fast, sma_slow : int
        Periods of the fast and slow simple moving averages whose
        crossover is tracked.
    rsi_period : int
        Number of price differences averaged by the RSI.
    rsi_overbought, rsi_oversold : float
        RSI levels above (below) which the market counts as overbought
        (oversold).
    macd_fast, macd_slow, macd_signal : int
        MACD EMA periods.
    """

    sma_fast: int = 5
    sma_slow: int = 20
    rsi_period: int = 14
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9


@dataclass
class SizingConfig:
    """Order sizing policy.

    Attributes
    ----------
    balance_fraction : float
        Fraction of the available quote balance committed when opening a
        position (``0.9`` = 90 %).
    order_type : str
        Exchange order type, ``limit`` or ``market``.  Limit orders are
        sent at the tick's price.
    amount_precision : int or None
        Decimal places the order amount is rounded down to.  ``None``
        sends the raw amount.
    """

    balance_fraction: float = 0.9
    order_type: str = "limit"
    amount_precision: Optional[int] = None


@dataclass
class GatewayConfig:
    """Exchange REST connection settings.

    Credentials left empty in the YAML file are read from the
    ``GATEIO_API_KEY`` and ``GATEIO_API_SECRET`` environment variables.
    """

    base_url: str = "https://api.gateio.ws/api/v4"
    api_key: str = ""
    api_secret: str = ""
    timeout: float = 10.0
    paper_balance: float = 1000.0


@dataclass
class StorageConfig:
    """Where controller state, the ledger and lock files live."""

    state_file: str = "state/state.json"
    ledger_file: str = "state/ledger.json"
    lock_dir: str = "state"
    report_dir: str = "results"


@dataclass
class Config:
    """Root configuration for the trading loop.

    Attributes
    ----------
    symbol : str
        Currency pair in ``BASE_QUOTE`` form (e.g. ``"BTC_USDT"``).
        Required, as are both thresholds; they have no defaults.
    profit_threshold : float
        Percentage gain at which a position (and the session) is closed.
    loss_threshold : float
        Percentage loss at which a position (and the session) is closed.
    interval : str
        Candle interval fed to the indicators (``1d`` by default).
    history_limit : int
        Number of candles requested per tick.
    price_interval : str
        Short candle interval used to read the latest price when a
        position is closed outside a tick.
    timezone : str
        IANA timezone that defines calendar days for the daily restart.
    poll_seconds : int
        Delay between iterations of the ``run`` loop.
    mode : str
        ``paper`` (simulated fills) or ``live``.
    """

    symbol: Optional[str] = None
    profit_threshold: Optional[float] = None
    loss_threshold: Optional[float] = None
    interval: str = "1d"
    history_limit: int = 100
    price_interval: str = "1m"
    timezone: str = "UTC"
    poll_seconds: int = 60
    mode: str = "paper"
    indicators: IndicatorConfig = field(default_factory=IndicatorConfig)
    sizing: SizingConfig = field(default_factory=SizingConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @property
    def base_currency(self) -> str:
        return self.symbol.split('_')[0]

    @property
    def quote_currency(self) -> str:
        return self.symbol.split('_')[-1]


RISK_KEYS = ('symbol', 'profit_threshold', 'loss_threshold')


def _merge_dict(defaults: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries.

    The values in `override` take precedence over those in `defaults`.
    This helper is used when loading YAML into nested dataclasses.
    """
    result: Dict[str, Any] = defaults.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def validate_config(cfg: Config) -> Config:
    """Check the parameters the loop cannot run without.

    Raises
    ------
    InvalidConfiguration
        If the symbol is missing or malformed, a threshold is not
        positive, an indicator period is not positive or the sizing
        fraction lies outside ``(0, 1]``.
    """
    if not cfg.symbol or '_' not in cfg.symbol:
        raise InvalidConfiguration(f"symbol must look like BASE_QUOTE, got {cfg.symbol!r}")
    if cfg.profit_threshold is None or cfg.profit_threshold <= 0:
        raise InvalidConfiguration(f"profit_threshold must be positive, got {cfg.profit_threshold!r}")
    if cfg.loss_threshold is None or cfg.loss_threshold <= 0:
        raise InvalidConfiguration(f"loss_threshold must be positive, got {cfg.loss_threshold!r}")
    ind = cfg.indicators
    periods = {
        'sma_fast': ind.sma_fast,
        'sma_slow': ind.sma_slow,
        'rsi_period': ind.rsi_period,
        'macd_fast': ind.macd_fast,
        'macd_slow': ind.macd_slow,
        'macd_signal': ind.macd_signal,
    }
    for name, value in periods.items():
        if int(value) <= 0:
            raise InvalidConfiguration(f"indicators.{name} must be positive, got {value!r}")
    if not 0 <= ind.rsi_oversold < ind.rsi_overbought <= 100:
        raise InvalidConfiguration(
            f"RSI levels must satisfy 0 <= oversold < overbought <= 100, "
            f"got {ind.rsi_oversold!r} / {ind.rsi_overbought!r}"
        )
    if not 0 < cfg.sizing.balance_fraction <= 1:
        raise InvalidConfiguration(
            f"sizing.balance_fraction must be in (0, 1], got {cfg.sizing.balance_fraction!r}"
        )
    if cfg.history_limit <= 0:
        raise InvalidConfiguration(f"history_limit must be positive, got {cfg.history_limit!r}")
    if cfg.mode not in ('paper', 'live'):
        raise InvalidConfiguration(f"mode must be 'paper' or 'live', got {cfg.mode!r}")
    return cfg


def config_from_dict(raw: Dict[str, Any]) -> Config:
    """Build and validate a `Config` from a (possibly partial) dictionary.

    Everything except the risk parameters falls back to its default.
    """
    if not isinstance(raw, dict):
        raise InvalidConfiguration(f"configuration must be a mapping, got {type(raw).__name__}")
    missing = [key for key in RISK_KEYS if raw.get(key) is None]
    if missing:
        raise InvalidConfiguration(f"missing required setting(s): {', '.join(missing)}")
    defaults: Dict[str, Any] = asdict(Config())
    merged = _merge_dict(defaults, raw)

    try:
        gateway_cfg = GatewayConfig(**merged['gateway'])
        if not gateway_cfg.api_key:
            gateway_cfg.api_key = os.environ.get('GATEIO_API_KEY', '')
        if not gateway_cfg.api_secret:
            gateway_cfg.api_secret = os.environ.get('GATEIO_API_SECRET', '')

        cfg = Config(
            symbol=str(merged['symbol']).upper(),
            profit_threshold=float(merged['profit_threshold']),
            loss_threshold=float(merged['loss_threshold']),
            interval=str(merged['interval']),
            history_limit=int(merged['history_limit']),
            price_interval=str(merged['price_interval']),
            timezone=str(merged['timezone']),
            poll_seconds=int(merged['poll_seconds']),
            mode=str(merged['mode']).lower(),
            indicators=IndicatorConfig(**merged['indicators']),
            sizing=SizingConfig(**merged['sizing']),
            gateway=gateway_cfg,
            storage=StorageConfig(**merged['storage']),
        )
        return validate_config(cfg)
    except (TypeError, ValueError) as exc:
        raise InvalidConfiguration(f"malformed configuration: {exc}") from exc


def load_config(path: str) -> Config:
    """Load a configuration file from the given YAML path.

    Parameters
    ----------
    path : str
        Path to the YAML file.

    Returns
    -------
    Config
        A populated and validated configuration object.
    """
    with open(path, "r", encoding="utf-8") as fh:
        raw: Dict[str, Any] = yaml.safe_load(fh) or {}
    return config_from_dict(raw)
