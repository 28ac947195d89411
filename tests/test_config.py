import os
import sys
import tempfile

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from spot_trader.config.schema import Config, config_from_dict, load_config, validate_config
from spot_trader.errors import InvalidConfiguration

import unittest


BASE = {"symbol": "BTC_USDT", "profit_threshold": 5.0, "loss_threshold": 2.0}


class TestLoadConfig(unittest.TestCase):
    def test_partial_yaml_is_merged_with_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.yaml")
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(
                    "symbol: eth_usdt\nprofit_threshold: 3\nloss_threshold: 1.5\n"
                    "indicators:\n  sma_fast: 7\nsizing:\n  amount_precision: 4\n"
                )
            cfg = load_config(path)
        self.assertEqual(cfg.symbol, "ETH_USDT")
        self.assertEqual(cfg.base_currency, "ETH")
        self.assertEqual(cfg.quote_currency, "USDT")
        self.assertEqual(cfg.profit_threshold, 3.0)
        self.assertEqual(cfg.loss_threshold, 1.5)
        self.assertEqual(cfg.indicators.sma_fast, 7)
        self.assertEqual(cfg.indicators.sma_slow, 20)
        self.assertEqual(cfg.sizing.amount_precision, 4)
        self.assertEqual(cfg.sizing.balance_fraction, 0.9)

    def test_credentials_fall_back_to_environment(self) -> None:
        os.environ["GATEIO_API_KEY"] = "key-from-env"
        try:
            cfg = config_from_dict(dict(BASE, gateway={"api_secret": "s3cret"}))
        finally:
            del os.environ["GATEIO_API_KEY"]
        self.assertEqual(cfg.gateway.api_key, "key-from-env")
        self.assertEqual(cfg.gateway.api_secret, "s3cret")

    def test_empty_file_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.yaml")
            with open(path, "w", encoding="utf-8") as fh:
                fh.write("")
            with self.assertRaises(InvalidConfiguration):
                load_config(path)


class TestValidateConfig(unittest.TestCase):
    def test_explicit_risk_parameters_are_valid(self) -> None:
        cfg = Config(symbol="BTC_USDT", profit_threshold=5.0, loss_threshold=2.0)
        self.assertIs(validate_config(cfg), cfg)

    def test_bare_config_has_no_risk_parameters(self) -> None:
        with self.assertRaises(InvalidConfiguration):
            validate_config(Config())

    def test_risk_parameters_are_never_defaulted(self) -> None:
        missing = [
            {},
            {"symbol": "ETH_USDT"},
            {"symbol": "ETH_USDT", "profit_threshold": 3},
            {"profit_threshold": 3, "loss_threshold": 1},
            dict(BASE, loss_threshold=None),
        ]
        for raw in missing:
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidConfiguration):
                    config_from_dict(raw)

    def test_bad_values_are_rejected(self) -> None:
        bad_inputs = [
            dict(BASE, symbol=""),
            dict(BASE, symbol="BTCUSDT"),
            dict(BASE, profit_threshold=0),
            dict(BASE, loss_threshold=-1),
            dict(BASE, profit_threshold="lots"),
            dict(BASE, indicators={"rsi_period": 0}),
            dict(BASE, indicators={"rsi_oversold": 80}),
            dict(BASE, sizing={"balance_fraction": 1.5}),
            dict(BASE, mode="backtest"),
            dict(BASE, sizing={"leverage": 3}),
        ]
        for raw in bad_inputs:
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidConfiguration):
                    config_from_dict(raw)

    def test_malformed_gateway_section_is_a_configuration_error(self) -> None:
        for gateway in ({"apikey": "x"}, None, "gate.io"):
            with self.subTest(gateway=gateway):
                with self.assertRaises(InvalidConfiguration):
                    config_from_dict(dict(BASE, gateway=gateway))


if __name__ == '__main__':
    unittest.main()
