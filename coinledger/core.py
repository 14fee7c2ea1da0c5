"""
Core types and pure helpers for the coin trading ledger.

This module provides the foundational data structures shared by the ledger,
the trade session and the balance stores:
1. Immutable data structures: Balance, TradeIntent
2. Enums: TradeKind, Rejection, SessionFailure
3. Exceptions: LedgerError and its store/configuration subclasses
4. Amount parsing and display formatting

All functions in this module are pure.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, ROUND_HALF_UP, getcontext
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Balance arithmetic must be deterministic. The global context is configured
# at module load time; code needing different settings must use
# decimal.localcontext().
#
#   - prec=50: enough headroom that amount / price keeps full precision
#   - rounding=ROUND_HALF_EVEN: unbiased rounding for intermediate results
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

DEFAULT_FIAT_CURRENCY = "USD"
DEFAULT_COIN_SYMBOL = "BTC"

# Simulated constant coin price, fiat per coin.
DEFAULT_COIN_PRICE = Decimal("68500.00")

# Compared against the coin balance, not a fiat amount.
DEFAULT_MIN_WITHDRAWAL = Decimal("100")

DEFAULT_INITIAL_FIAT = Decimal("1000.00")
DEFAULT_INITIAL_COIN = Decimal("0")

# Display precision only. Persisted values are never rounded.
DISPLAY_PRECISION = {
    'FIAT': 2,
    'COIN': 4,
}

DISPLAY_ROUNDING = {
    'FIAT': ROUND_HALF_UP,
    'COIN': ROUND_HALF_UP,
}

CURRENCY_SYMBOLS = {
    'USD': '$',
    'EUR': '€',
    'GBP': '£',
    'JPY': '¥',
}

# Anything the UI layer may hand us as an amount.
AmountLike = Union[Decimal, int, float, str, None]


# ============================================================================
# ENUMS
# ============================================================================

class TradeKind(Enum):
    """The four user actions the dashboard can issue."""
    DEPOSIT = "deposit"
    BUY = "buy"
    SELL = "sell"
    WITHDRAW = "withdraw"


class Rejection(Enum):
    """
    Reason the ledger declined an intent.

    Rejections are returned as values, never raised. All of them are
    user-correctable and none are retried automatically.
    """
    INVALID_AMOUNT = "invalid_amount"
    INSUFFICIENT_FIAT = "insufficient_fiat"
    INSUFFICIENT_COIN = "insufficient_coin"
    BELOW_MINIMUM = "below_minimum"


class SessionFailure(Enum):
    """
    Reason a trade session could not complete an intent.

    NOT_READY: identity, store or first snapshot unavailable (no store access made).
    BUSY: another intent from the same session is still in flight.
    PERSISTENCE_FAILURE: the store rejected or failed the write.
    TIMEOUT: the write did not resolve within the configured bound.
    STORE_LISTEN_FAILURE: the push subscription is broken.
    """
    NOT_READY = "not_ready"
    BUSY = "busy"
    PERSISTENCE_FAILURE = "persistence_failure"
    TIMEOUT = "timeout"
    STORE_LISTEN_FAILURE = "store_listen_failure"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all coinledger errors."""
    pass


class ConfigurationError(LedgerError):
    """Raised for invalid configuration, such as a non-positive coin price."""
    pass


class StoreError(LedgerError):
    """Raised by a BalanceStore when a read or write did not complete."""
    pass


class DocumentError(StoreError):
    """Raised when a stored document cannot be decoded into a Balance."""
    pass


# ============================================================================
# AMOUNT HELPERS
# ============================================================================

def parse_amount(value: AmountLike) -> Optional[Decimal]:
    """
    Convert a user-supplied amount to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1") rather than its
    binary expansion. Returns None for anything that is not a finite number
    (None, NaN, infinities, unparseable strings, booleans).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
    if not result.is_finite():
        return None
    return result


def _to_decimal(value: Any, field_name: str) -> Decimal:
    """Strict conversion used for persisted and constructed balances."""
    if isinstance(value, bool):
        raise ValueError(f"Balance {field_name} must be a number, got {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float, str)):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Balance {field_name} is not a number: {value!r}") from None
    raise ValueError(f"Balance {field_name} must be a number, got {type(value).__name__}")


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Balance:
    """
    The fiat/coin pair held by one user identity.

    Attributes:
        fiat: Fiat currency amount (non-negative, finite).
        coin: Coin amount (non-negative, finite).

    Values given as int, float or str are converted to Decimal. Negative,
    NaN or infinite values raise ValueError.
    """
    fiat: Decimal
    coin: Decimal

    def __post_init__(self):
        fiat = _to_decimal(self.fiat, "fiat")
        coin = _to_decimal(self.coin, "coin")
        if not fiat.is_finite():
            raise ValueError(f"Balance fiat must be finite, got {fiat}")
        if not coin.is_finite():
            raise ValueError(f"Balance coin must be finite, got {coin}")
        if fiat < 0:
            raise ValueError(f"Balance fiat cannot be negative, got {fiat}")
        if coin < 0:
            raise ValueError(f"Balance coin cannot be negative, got {coin}")
        object.__setattr__(self, 'fiat', fiat)
        object.__setattr__(self, 'coin', coin)

    @classmethod
    def default(cls) -> Balance:
        """The balance a new identity starts with."""
        return cls(fiat=DEFAULT_INITIAL_FIAT, coin=DEFAULT_INITIAL_COIN)

    def to_document(self) -> Dict[str, Decimal]:
        """Two-field document written to the store (full replace)."""
        return {'fiat': self.fiat, 'coin': self.coin}

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Balance:
        """
        Decode a stored document.

        Missing or falsy fields read as zero. Keys other than 'fiat' and
        'coin' are ignored.

        Raises:
            DocumentError: If a field is not a valid non-negative number.
        """
        try:
            return cls(
                fiat=document.get('fiat') or Decimal("0"),
                coin=document.get('coin') or Decimal("0"),
            )
        except ValueError as e:
            raise DocumentError(str(e)) from e

    def __repr__(self) -> str:
        return f"Balance(fiat={self.fiat}, coin={self.coin})"


@dataclass(frozen=True, slots=True)
class TradeIntent:
    """
    A user-requested action, not yet validated.

    Attributes:
        kind: Which action to perform.
        amount: Fiat value for DEPOSIT, BUY and SELL. Ignored for WITHDRAW,
            which always takes the whole coin balance.

    The amount is kept exactly as supplied; the ledger decides whether it
    is valid.
    """
    kind: TradeKind
    amount: AmountLike = None

    @classmethod
    def deposit(cls, amount: AmountLike) -> TradeIntent:
        return cls(TradeKind.DEPOSIT, amount)

    @classmethod
    def buy(cls, amount: AmountLike) -> TradeIntent:
        return cls(TradeKind.BUY, amount)

    @classmethod
    def sell(cls, amount: AmountLike) -> TradeIntent:
        return cls(TradeKind.SELL, amount)

    @classmethod
    def withdraw(cls) -> TradeIntent:
        return cls(TradeKind.WITHDRAW)

    def __repr__(self) -> str:
        if self.kind is TradeKind.WITHDRAW:
            return "TradeIntent(withdraw)"
        return f"TradeIntent({self.kind.value} {self.amount!r})"


# ============================================================================
# DISPLAY FORMATTING
# ============================================================================

def round_for_display(value: Decimal, kind: str) -> Decimal:
    """Quantize a value to the display precision of 'FIAT' or 'COIN'."""
    quantizer = Decimal(10) ** -DISPLAY_PRECISION[kind]
    return value.quantize(quantizer, rounding=DISPLAY_ROUNDING[kind])


def format_fiat(amount: Decimal, currency: str = DEFAULT_FIAT_CURRENCY) -> str:
    """
    Format a fiat amount like "$1,234.50".

    Currencies without a known symbol are prefixed with their code.
    """
    rounded = round_for_display(Decimal(amount), 'FIAT')
    sign = "-" if rounded < 0 else ""
    symbol = CURRENCY_SYMBOLS.get(currency)
    body = f"{abs(rounded):,.2f}"
    if symbol is None:
        return f"{sign}{currency} {body}"
    return f"{sign}{symbol}{body}"


def format_coin(amount: Decimal) -> str:
    """Format a coin amount with four fraction digits, e.g. "0.0073"."""
    return f"{round_for_display(Decimal(amount), 'COIN'):.4f}"
