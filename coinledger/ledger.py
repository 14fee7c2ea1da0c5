"""
ledger.py - Pure balance transitions for deposit, buy, sell and withdraw

The Ledger turns (current balance, intent, price) into a LedgerOutcome.
It performs no I/O and holds no mutable state: the same inputs always
produce the same outcome, so it can be tested against arbitrary prices.

Rules:
    - DEPOSIT: fiat += amount
    - BUY:     fiat -= amount, coin += amount / price
    - SELL:    fiat += amount, coin -= amount / price
    - WITHDRAW: coin -> 0 when coin >= min_withdrawal (all-or-nothing)

User-correctable failures come back as a Rejection on the outcome and are
never raised. A non-positive price is a configuration error and raises.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Optional

from .core import (
    Balance, TradeIntent, TradeKind, Rejection, AmountLike,
    ConfigurationError,
    DEFAULT_MIN_WITHDRAWAL,
    parse_amount,
)


# ============================================================================
# OUTCOME
# ============================================================================

@dataclass(frozen=True, slots=True)
class LedgerOutcome:
    """
    Result of applying one intent to one balance.

    Attributes:
        intent: The intent that was evaluated.
        before: Balance the intent was evaluated against.
        after: New balance if accepted, None if rejected.
        rejection: Why the intent was declined, None if accepted.
    """
    intent: TradeIntent
    before: Balance
    after: Optional[Balance] = None
    rejection: Optional[Rejection] = None

    def __post_init__(self):
        if (self.after is None) == (self.rejection is None):
            raise ValueError("LedgerOutcome needs exactly one of after or rejection")

    @property
    def accepted(self) -> bool:
        return self.rejection is None

    @property
    def fiat_delta(self) -> Decimal:
        """Signed fiat change; zero for a rejected outcome."""
        if self.after is None:
            return Decimal("0")
        return self.after.fiat - self.before.fiat

    @property
    def coin_delta(self) -> Decimal:
        """Signed coin change; zero for a rejected outcome."""
        if self.after is None:
            return Decimal("0")
        return self.after.coin - self.before.coin

    def __repr__(self) -> str:
        if self.rejection is not None:
            return f"LedgerOutcome({self.intent!r} REJECTED: {self.rejection.value})"
        return f"LedgerOutcome({self.intent!r} {self.before!r} -> {self.after!r})"


def _accept(intent: TradeIntent, before: Balance, fiat: Decimal, coin: Decimal) -> LedgerOutcome:
    return LedgerOutcome(intent=intent, before=before, after=Balance(fiat=fiat, coin=coin))


def _reject(intent: TradeIntent, before: Balance, reason: Rejection) -> LedgerOutcome:
    return LedgerOutcome(intent=intent, before=before, rejection=reason)


def _positive_amount(intent: TradeIntent) -> Optional[Decimal]:
    """Parsed amount if it is a finite number > 0, else None."""
    amount = parse_amount(intent.amount)
    if amount is None or amount <= 0:
        return None
    return amount


# ============================================================================
# QUOTES
# ============================================================================

def _require_price(price: Decimal) -> Decimal:
    parsed = parse_amount(price)
    if parsed is None or parsed <= 0:
        raise ConfigurationError(f"Coin price must be positive, got {price!r}")
    return parsed


def quote_buy(amount: AmountLike, price: Decimal) -> Decimal:
    """Coins received for spending `amount` fiat at `price` (zero for an invalid amount)."""
    return (parse_amount(amount) or Decimal("0")) / _require_price(price)


def quote_sell(amount: AmountLike, price: Decimal) -> Decimal:
    """Coins given up to receive `amount` fiat at `price` (zero for an invalid amount)."""
    return (parse_amount(amount) or Decimal("0")) / _require_price(price)


def withdrawal_shortfall(balance: Balance, min_withdrawal: Decimal = DEFAULT_MIN_WITHDRAWAL) -> Decimal:
    """Coins still needed before a withdrawal is allowed (zero when eligible)."""
    return max(Decimal(min_withdrawal) - balance.coin, Decimal("0"))


# ============================================================================
# RULES
# ============================================================================

def compute_deposit(current: Balance, intent: TradeIntent, price: Decimal) -> LedgerOutcome:
    """Credit fiat. Coin is never touched."""
    amount = _positive_amount(intent)
    if amount is None:
        return _reject(intent, current, Rejection.INVALID_AMOUNT)
    return _accept(intent, current, current.fiat + amount, current.coin)


def compute_buy(current: Balance, intent: TradeIntent, price: Decimal) -> LedgerOutcome:
    """Spend `amount` fiat for amount / price coins."""
    amount = _positive_amount(intent)
    if amount is None:
        return _reject(intent, current, Rejection.INVALID_AMOUNT)
    coins_received = amount / price
    if current.fiat < amount:
        return _reject(intent, current, Rejection.INSUFFICIENT_FIAT)
    return _accept(intent, current, current.fiat - amount, current.coin + coins_received)


def compute_sell(current: Balance, intent: TradeIntent, price: Decimal) -> LedgerOutcome:
    """Receive `amount` fiat by selling amount / price coins."""
    amount = _positive_amount(intent)
    if amount is None:
        return _reject(intent, current, Rejection.INVALID_AMOUNT)
    coins_to_sell = amount / price
    if current.coin < coins_to_sell:
        return _reject(intent, current, Rejection.INSUFFICIENT_COIN)
    return _accept(intent, current, current.fiat + amount, current.coin - coins_to_sell)


RuleFunction = Callable[[Balance, TradeIntent, Decimal], LedgerOutcome]


# ============================================================================
# LEDGER
# ============================================================================

class Ledger:
    """
    Stateless rule set for a single fiat/coin balance.

    Withdraw is the only rule with configuration: the minimum coin balance
    required before the whole balance may be withdrawn.

    Example:
        ledger = Ledger()
        outcome = ledger.apply(Balance(1000, 0), TradeIntent.buy(500), Decimal("68500"))
        if outcome.accepted:
            store_write(outcome.after)
    """

    def __init__(self, min_withdrawal: Decimal = DEFAULT_MIN_WITHDRAWAL):
        parsed = parse_amount(min_withdrawal)
        if parsed is None or parsed < 0:
            raise ConfigurationError(f"min_withdrawal must be a non-negative number, got {min_withdrawal!r}")
        self.min_withdrawal = parsed
        self._rules: Dict[TradeKind, RuleFunction] = {
            TradeKind.DEPOSIT: compute_deposit,
            TradeKind.BUY: compute_buy,
            TradeKind.SELL: compute_sell,
            TradeKind.WITHDRAW: self.compute_withdraw,
        }

    def compute_withdraw(self, current: Balance, intent: TradeIntent, price: Decimal) -> LedgerOutcome:
        """Withdraw the entire coin balance. The supplied amount is ignored."""
        if current.coin < self.min_withdrawal:
            return _reject(intent, current, Rejection.BELOW_MINIMUM)
        return _accept(intent, current, current.fiat, Decimal("0"))

    def can_withdraw(self, balance: Balance) -> bool:
        return balance.coin >= self.min_withdrawal

    def shortfall(self, balance: Balance) -> Decimal:
        return withdrawal_shortfall(balance, self.min_withdrawal)

    def apply(self, current: Balance, intent: TradeIntent, price: Decimal) -> LedgerOutcome:
        """
        Evaluate an intent against a balance at a given price.

        Args:
            current: Last known balance
            intent: Action to evaluate
            price: Fiat per coin (must be positive)

        Returns:
            LedgerOutcome with either the new balance or a Rejection

        Raises:
            ConfigurationError: If price is not a positive number
        """
        price = _require_price(price)
        return self._rules[intent.kind](current, intent, price)

    def __repr__(self) -> str:
        return f"Ledger(min_withdrawal={self.min_withdrawal})"
