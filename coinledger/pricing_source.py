"""
pricing_source.py - Coin price oracles

Supplies the fiat-per-coin rate the ledger trades at.

Classes:
- PriceOracle: Protocol defining the pricing interface
- StaticPriceOracle: Constant simulated price
- TimeSeriesPriceOracle: Time-varying prices with historical data

Prices are always positive Decimals quoted in the oracle's fiat currency.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable
from bisect import bisect_right

from .core import (
    ConfigurationError,
    DEFAULT_COIN_PRICE, DEFAULT_COIN_SYMBOL, DEFAULT_FIAT_CURRENCY,
    parse_amount,
)


def _validate_price(price) -> Decimal:
    parsed = parse_amount(price)
    if parsed is None or parsed <= 0:
        raise ConfigurationError(f"Coin price must be positive, got {price!r}")
    return parsed


@runtime_checkable
class PriceOracle(Protocol):
    """
    Protocol for coin price sources.

    Implementations quote one coin against one fiat currency and must
    return a positive price.
    """
    fiat_currency: str
    coin_symbol: str

    def get_price(self, timestamp: Optional[datetime] = None) -> Decimal:
        """Price of one coin in fiat at `timestamp` (now when omitted)."""
        ...


class StaticPriceOracle:
    """
    Oracle with a constant price.

    The timestamp is ignored. update_price() exists so a simulation can
    move the price between sessions.
    """

    def __init__(
        self,
        price: Decimal = DEFAULT_COIN_PRICE,
        fiat_currency: str = DEFAULT_FIAT_CURRENCY,
        coin_symbol: str = DEFAULT_COIN_SYMBOL,
    ):
        """
        Args:
            price: Fiat per coin
            fiat_currency: Currency the price is quoted in
            coin_symbol: Asset being priced

        Raises:
            ConfigurationError: If price is not positive
        """
        self.fiat_currency = fiat_currency
        self.coin_symbol = coin_symbol
        self.price = _validate_price(price)

    def get_price(self, timestamp: Optional[datetime] = None) -> Decimal:
        return self.price

    def update_price(self, price: Decimal) -> None:
        self.price = _validate_price(price)

    def __repr__(self):
        return f"StaticPriceOracle({self.coin_symbol}/{self.fiat_currency}={self.price})"


class TimeSeriesPriceOracle:
    """
    Oracle with time-varying prices.

    Returns the most recent observation at or before the requested
    timestamp. A request with no timestamp uses the latest observation.

    Supports two initialization patterns:
    - Empty initialization for incremental addition via add_price()
    - Batch initialization with a complete price path
    """

    def __init__(
        self,
        price_path: Optional[List[Tuple[datetime, Decimal]]] = None,
        fiat_currency: str = DEFAULT_FIAT_CURRENCY,
        coin_symbol: str = DEFAULT_COIN_SYMBOL,
    ):
        """
        Args:
            price_path: Optional list of (timestamp, price) tuples, any order
            fiat_currency: Currency the prices are quoted in
            coin_symbol: Asset being priced

        Examples:
            oracle = TimeSeriesPriceOracle()
            oracle.add_price(datetime(2025, 1, 15), Decimal("68500"))

            oracle = TimeSeriesPriceOracle([(t0, 68000), (t1, 68500), (t2, 69100)])
        """
        self.fiat_currency = fiat_currency
        self.coin_symbol = coin_symbol
        self.price_history: List[Tuple[datetime, Decimal]] = []

        if price_path:
            self.price_history = sorted(
                ((ts, _validate_price(p)) for ts, p in price_path),
                key=lambda x: x[0],
            )

    def add_price(self, timestamp: datetime, price: Decimal) -> None:
        """Record an observation, keeping history sorted by timestamp."""
        self.price_history.append((timestamp, _validate_price(price)))
        self.price_history.sort(key=lambda x: x[0])

    def add_prices(self, observations: Dict[datetime, Decimal]) -> None:
        for timestamp, price in observations.items():
            self.add_price(timestamp, price)

    def get_price(self, timestamp: Optional[datetime] = None) -> Decimal:
        """
        Get the price at or before `timestamp`.

        Uses binary search for O(log n) lookup.

        Raises:
            ConfigurationError: If no observation exists at or before the timestamp
        """
        if not self.price_history:
            raise ConfigurationError(f"No {self.coin_symbol} price observations recorded")

        if timestamp is None:
            return self.price_history[-1][1]

        timestamps = [ts for ts, _ in self.price_history]
        idx = bisect_right(timestamps, timestamp)

        if idx == 0:
            raise ConfigurationError(
                f"No {self.coin_symbol} price at or before {timestamp.isoformat()}"
            )

        return self.price_history[idx - 1][1]

    def get_all_timestamps(self) -> List[datetime]:
        return [ts for ts, _ in self.price_history]

    def __repr__(self):
        return (f"TimeSeriesPriceOracle({self.coin_symbol}/{self.fiat_currency}, "
                f"{len(self.price_history)} observations)")
