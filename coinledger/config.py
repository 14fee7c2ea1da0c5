"""
config.py - Trade session configuration

SessionConfig gathers every tunable of a trading session. Values can be
set directly or loaded from COINLEDGER_* environment variables.
"""

from __future__ import annotations
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional
import os

from .core import (
    Balance,
    ConfigurationError,
    DEFAULT_COIN_PRICE, DEFAULT_COIN_SYMBOL, DEFAULT_FIAT_CURRENCY,
    DEFAULT_INITIAL_COIN, DEFAULT_INITIAL_FIAT, DEFAULT_MIN_WITHDRAWAL,
    parse_amount,
)


ENV_PREFIX = "COINLEDGER_"


@dataclass(frozen=True)
class SessionConfig:
    """
    Configuration for a TradeSession.

    Attributes:
        namespace: Application namespace for balance documents
        fiat_currency: Fiat currency code used in messages
        coin_symbol: Coin symbol used in messages
        coin_price: Simulated fiat-per-coin price (must be positive)
        min_withdrawal: Coin balance required before withdrawing
        initial_fiat: Fiat balance given to a new identity
        initial_coin: Coin balance given to a new identity
        write_timeout: Seconds to wait for a store write
        subscribe_timeout: Seconds to wait for the first snapshot
    """
    namespace: str = "trade-coin-app-id"
    fiat_currency: str = DEFAULT_FIAT_CURRENCY
    coin_symbol: str = DEFAULT_COIN_SYMBOL
    coin_price: Decimal = DEFAULT_COIN_PRICE
    min_withdrawal: Decimal = DEFAULT_MIN_WITHDRAWAL
    initial_fiat: Decimal = DEFAULT_INITIAL_FIAT
    initial_coin: Decimal = DEFAULT_INITIAL_COIN
    write_timeout: float = 10.0
    subscribe_timeout: float = 10.0

    def __post_init__(self):
        if not self.namespace or not self.namespace.strip():
            raise ConfigurationError("namespace cannot be empty")
        if not self.fiat_currency or not self.coin_symbol:
            raise ConfigurationError("fiat_currency and coin_symbol are required")

        for name in ('coin_price', 'min_withdrawal', 'initial_fiat', 'initial_coin'):
            raw = getattr(self, name)
            value = parse_amount(raw)
            if value is None or value < 0:
                raise ConfigurationError(f"{name} must be a non-negative number, got {raw!r}")
            object.__setattr__(self, name, value)
        if self.coin_price <= 0:
            raise ConfigurationError(f"coin_price must be positive, got {self.coin_price}")

        for name in ('write_timeout', 'subscribe_timeout'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive number of seconds, got {value!r}")

    @property
    def initial_balance(self) -> Balance:
        return Balance(fiat=self.initial_fiat, coin=self.initial_coin)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> SessionConfig:
        """
        Build a config from COINLEDGER_<FIELD> variables.

        Unset or empty variables keep their defaults.

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        if environ is None:
            environ = os.environ

        overrides: Dict[str, Any] = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or not raw.strip():
                continue
            raw = raw.strip()
            if f.name in ('write_timeout', 'subscribe_timeout'):
                try:
                    overrides[f.name] = float(raw)
                except ValueError:
                    raise ConfigurationError(f"{ENV_PREFIX}{f.name.upper()} is not a number: {raw!r}") from None
            else:
                overrides[f.name] = raw
        return cls(**overrides)
