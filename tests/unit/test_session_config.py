"""
test_session_config.py - Unit tests for SessionConfig

Tests:
- Defaults and Decimal conversion
- Validation of prices, minimums, balances and timeouts
- Loading from COINLEDGER_* environment variables
"""

import pytest
from dataclasses import FrozenInstanceError
from decimal import Decimal

from coinledger import Balance, ConfigurationError, SessionConfig


class TestSessionConfigDefaults:

    def test_defaults(self):
        config = SessionConfig()
        assert config.namespace == "trade-coin-app-id"
        assert config.fiat_currency == "USD"
        assert config.coin_symbol == "BTC"
        assert config.coin_price == Decimal("68500.00")
        assert config.min_withdrawal == Decimal("100")
        assert config.write_timeout == 10.0
        assert config.subscribe_timeout == 10.0

    def test_initial_balance(self):
        assert SessionConfig().initial_balance == Balance(1000, 0)
        assert SessionConfig(initial_fiat=5, initial_coin="0.5").initial_balance == Balance(5, "0.5")

    def test_amounts_converted_to_decimal(self):
        config = SessionConfig(coin_price="100", min_withdrawal=2, initial_fiat=0.1)
        assert config.coin_price == Decimal("100")
        assert config.min_withdrawal == Decimal("2")
        assert config.initial_fiat == Decimal("0.1")

    def test_frozen(self):
        config = SessionConfig()
        with pytest.raises(FrozenInstanceError):
            config.coin_price = Decimal("1")


class TestSessionConfigValidation:

    @pytest.mark.parametrize("price", [0, "0", -1, "abc", None])
    def test_coin_price_must_be_positive(self, price):
        with pytest.raises(ConfigurationError, match="coin_price"):
            SessionConfig(coin_price=price)

    def test_negative_min_withdrawal_raises(self):
        with pytest.raises(ConfigurationError, match="min_withdrawal"):
            SessionConfig(min_withdrawal=-1)

    def test_zero_min_withdrawal_allowed(self):
        assert SessionConfig(min_withdrawal=0).min_withdrawal == 0

    def test_negative_initial_balance_raises(self):
        with pytest.raises(ConfigurationError, match="initial_fiat"):
            SessionConfig(initial_fiat=-10)

    @pytest.mark.parametrize("timeout", [0, -1, True, "5", None])
    def test_invalid_write_timeout_raises(self, timeout):
        with pytest.raises(ConfigurationError, match="write_timeout"):
            SessionConfig(write_timeout=timeout)

    def test_invalid_subscribe_timeout_raises(self):
        with pytest.raises(ConfigurationError, match="subscribe_timeout"):
            SessionConfig(subscribe_timeout=0)

    @pytest.mark.parametrize("namespace", ["", "   "])
    def test_empty_namespace_raises(self, namespace):
        with pytest.raises(ConfigurationError, match="namespace"):
            SessionConfig(namespace=namespace)

    def test_empty_symbol_raises(self):
        with pytest.raises(ConfigurationError):
            SessionConfig(coin_symbol="")


class TestSessionConfigFromEnv:

    def test_empty_environment_gives_defaults(self):
        assert SessionConfig.from_env({}) == SessionConfig()

    def test_reads_prefixed_variables(self):
        config = SessionConfig.from_env({
            'COINLEDGER_NAMESPACE': 'demo-app',
            'COINLEDGER_COIN_PRICE': '70000',
            'COINLEDGER_MIN_WITHDRAWAL': '0.5',
            'COINLEDGER_WRITE_TIMEOUT': '2.5',
            'COINLEDGER_FIAT_CURRENCY': 'EUR',
        })
        assert config.namespace == 'demo-app'
        assert config.coin_price == Decimal("70000")
        assert config.min_withdrawal == Decimal("0.5")
        assert config.write_timeout == 2.5
        assert config.fiat_currency == 'EUR'

    def test_blank_values_keep_defaults(self):
        config = SessionConfig.from_env({'COINLEDGER_COIN_PRICE': '  '})
        assert config.coin_price == Decimal("68500.00")

    def test_unrelated_variables_ignored(self):
        config = SessionConfig.from_env({'COIN_PRICE': '1', 'OTHER_COINLEDGER_X': '2'})
        assert config == SessionConfig()

    def test_bad_timeout_raises(self):
        with pytest.raises(ConfigurationError, match="COINLEDGER_SUBSCRIBE_TIMEOUT"):
            SessionConfig.from_env({'COINLEDGER_SUBSCRIBE_TIMEOUT': 'soon'})

    def test_bad_price_raises(self):
        with pytest.raises(ConfigurationError, match="coin_price"):
            SessionConfig.from_env({'COINLEDGER_COIN_PRICE': '-5'})

    def test_reads_os_environ_by_default(self, monkeypatch):
        monkeypatch.setenv('COINLEDGER_INITIAL_FIAT', '250')
        assert SessionConfig.from_env().initial_fiat == Decimal("250")
