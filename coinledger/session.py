"""
session.py - One user's trading session against a BalanceStore

TradeSession bridges UI intents to committed balance changes:

    intent -> Ledger.apply(snapshot, intent, price) -> store.write(new balance)
           -> store pushes snapshot -> session snapshot updated

The session never reads the store to decide a trade. It trades against the
last snapshot pushed by its subscription, and the push channel (not the
write acknowledgment) is the source of truth for what is displayed. Writes
are blind full-document replaces: the last writer wins.

Concurrency:
    One asyncio event loop per session. A busy flag rejects a second intent
    while a write is in flight; it is advisory and does not lock the store.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

from .config import SessionConfig
from .core import (
    Balance, TradeIntent, TradeKind, Rejection, SessionFailure,
    ConfigurationError, StoreError,
    format_coin, format_fiat,
)
from .ledger import Ledger, LedgerOutcome, quote_buy, quote_sell
from .pricing_source import PriceOracle, StaticPriceOracle
from .store import BalanceStore, Subscription

logger = logging.getLogger(__name__)


NOT_READY_MESSAGE = "Trading is unavailable until the session is connected."
BUSY_MESSAGE = "A transaction is already in progress."
LISTEN_FAILURE_MESSAGE = "Error connecting to database."
PERSISTENCE_FAILURE_MESSAGE = "Transaction failed due to a database error."
TIMEOUT_MESSAGE = "Transaction timed out waiting for the database."
INVALID_AMOUNT_MESSAGE = "Please enter a valid amount."


# ============================================================================
# RESULTS AND MESSAGES
# ============================================================================

@dataclass(frozen=True, slots=True)
class TradeResult:
    """
    What the UI receives for one intent.

    Attributes:
        success: True only if the new balance was written
        message: User-facing text
        reason: Rejection or SessionFailure when success is False
        outcome: Ledger evaluation, None if the ledger was never consulted
        balance: Session snapshot after the intent completed
    """
    success: bool
    message: str
    reason: Optional[Union[Rejection, SessionFailure]] = None
    outcome: Optional[LedgerOutcome] = None
    balance: Optional[Balance] = None


def describe_rejection(outcome: LedgerOutcome, config: SessionConfig, min_withdrawal) -> str:
    """User message for a rejected ledger outcome."""
    rejection = outcome.rejection
    if rejection is Rejection.INVALID_AMOUNT:
        return INVALID_AMOUNT_MESSAGE
    if rejection is Rejection.INSUFFICIENT_FIAT:
        return f"Error: Insufficient {config.fiat_currency} balance to complete the purchase."
    if rejection is Rejection.INSUFFICIENT_COIN:
        return f"Error: Insufficient {config.coin_symbol} balance to complete the sale."
    if rejection is Rejection.BELOW_MINIMUM:
        return (f"Withdrawal failed: Minimum withdrawal is {min_withdrawal} {config.coin_symbol}. "
                f"You currently have {format_coin(outcome.before.coin)} {config.coin_symbol}.")
    raise ValueError(f"Outcome is not a rejection: {outcome!r}")


def describe_success(outcome: LedgerOutcome, config: SessionConfig) -> str:
    """User message for a committed outcome, quoting the computed quantities."""
    kind = outcome.intent.kind
    if kind is TradeKind.DEPOSIT:
        return (f"Deposit of {format_fiat(outcome.fiat_delta, config.fiat_currency)} successful! "
                f"Your new balance is {format_fiat(outcome.after.fiat, config.fiat_currency)}.")
    if kind is TradeKind.BUY:
        return f"Purchase of {format_coin(outcome.coin_delta)} {config.coin_symbol} successful!"
    if kind is TradeKind.SELL:
        return f"Sale successful. You received {format_fiat(outcome.fiat_delta, config.fiat_currency)}."
    return f"Withdrawal of {format_coin(-outcome.coin_delta)} {config.coin_symbol} initiated! (Simulated)"


# ============================================================================
# SESSION
# ============================================================================

SnapshotWatcher = Callable[[Balance], None]


class TradeSession:
    """
    Executes trade intents for a single user identity.

    Example:
        store = InMemoryBalanceStore()
        session = TradeSession("user-1", store)
        await session.start()
        result = await session.execute(TradeIntent.buy(500))
        print(result.message, session.display())
        session.stop()
    """

    def __init__(
        self,
        identity: Optional[str],
        store: Optional[BalanceStore],
        price_oracle: Optional[PriceOracle] = None,
        config: Optional[SessionConfig] = None,
        ledger: Optional[Ledger] = None,
    ):
        """
        Args:
            identity: Resolved user identity, None until authentication completes
            store: Balance store, None if no connection is available
            price_oracle: Price source (default: static price from config)
            config: Session configuration (default: SessionConfig())
            ledger: Rule set (default: Ledger with config.min_withdrawal)

        Raises:
            ConfigurationError: If the store's namespace or the oracle's
                currency pair differs from the config
        """
        self.identity = identity
        self.store = store
        self.config = config or SessionConfig()
        if store is not None and store.namespace != self.config.namespace:
            raise ConfigurationError(
                f"Store namespace {store.namespace!r} does not match "
                f"configured namespace {self.config.namespace!r}"
            )
        if price_oracle is not None and (
            price_oracle.fiat_currency != self.config.fiat_currency
            or price_oracle.coin_symbol != self.config.coin_symbol
        ):
            raise ConfigurationError(
                f"Price oracle quotes {price_oracle.coin_symbol}/{price_oracle.fiat_currency}, "
                f"configured pair is {self.config.coin_symbol}/{self.config.fiat_currency}"
            )
        self.price_oracle = price_oracle or StaticPriceOracle(
            self.config.coin_price, self.config.fiat_currency, self.config.coin_symbol
        )
        self.ledger = ledger or Ledger(self.config.min_withdrawal)
        self.status_message = ""

        self._snapshot: Optional[Balance] = None
        self._subscription: Optional[Subscription] = None
        self._listen_error: Optional[Exception] = None
        self._settled = asyncio.Event()
        self._busy = False
        self._default_written = False
        self._init_task: Optional[asyncio.Task] = None
        self._watchers: List[SnapshotWatcher] = []

    # ========================================================================
    # STATE
    # ========================================================================

    @property
    def snapshot(self) -> Optional[Balance]:
        """Last balance pushed by the store (None before the first push)."""
        return self._snapshot

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def connected(self) -> bool:
        return self._subscription is not None and self._listen_error is None

    @property
    def ready(self) -> bool:
        """True when trades may be executed."""
        return (
            bool(self.identity)
            and self.store is not None
            and self.connected
            and self._snapshot is not None
        )

    def add_watcher(self, watcher: SnapshotWatcher) -> None:
        """Call `watcher` with every snapshot the store pushes."""
        self._watchers.append(watcher)

    def remove_watcher(self, watcher: SnapshotWatcher) -> None:
        self._watchers.remove(watcher)

    # ========================================================================
    # SUBSCRIPTION LIFECYCLE
    # ========================================================================

    async def start(self) -> None:
        """
        Subscribe to the identity's balance and wait for the first snapshot.

        If the document does not exist yet, the default balance is shown
        and written once. A subscription that does not deliver within
        config.subscribe_timeout leaves the session disconnected.
        """
        if not self.identity or self.store is None:
            logger.warning("Cannot start session: identity or store unavailable")
            self.status_message = NOT_READY_MESSAGE
            return
        if self._subscription is not None:
            return

        self._settled.clear()
        self._listen_error = None
        self._subscription = self.store.subscribe(self.identity, self._on_change, self._on_error)

        try:
            await asyncio.wait_for(self._settled.wait(), timeout=self.config.subscribe_timeout)
        except asyncio.TimeoutError as e:
            logger.warning("No balance snapshot for %s within %.1fs",
                           self.identity, self.config.subscribe_timeout)
            self._on_error(e)
            return

        if self._init_task is not None:
            # Failures are reported by _on_init_done.
            await asyncio.wait([self._init_task])
        if self.connected:
            logger.info("Session started for %s: %r", self.identity, self._snapshot)

    def stop(self) -> None:
        """Unsubscribe. Safe to call more than once."""
        if self._subscription is None:
            return
        self.store.unsubscribe(self._subscription)
        self._subscription = None
        logger.info("Session stopped for %s", self.identity)

    async def resubscribe(self) -> None:
        """Replace a broken (or live) subscription with a fresh one."""
        self.stop()
        await self.start()

    def _on_change(self, balance: Optional[Balance]) -> None:
        if balance is None:
            balance = self.config.initial_balance
            if not self._default_written:
                self._default_written = True
                self._init_task = asyncio.get_running_loop().create_task(
                    self._write_default(balance)
                )
                self._init_task.add_done_callback(self._on_init_done)
        self._snapshot = balance
        self._listen_error = None
        self.status_message = ""
        self._settled.set()
        for watcher in list(self._watchers):
            try:
                watcher(balance)
            except Exception:
                logger.exception("Snapshot watcher %r failed for %s", watcher, self.identity)

    def _on_error(self, error: Exception) -> None:
        logger.error("Balance listener failed for %s: %s", self.identity, error)
        self._listen_error = error
        self.status_message = LISTEN_FAILURE_MESSAGE
        self._settled.set()

    async def _write_default(self, balance: Balance) -> None:
        # Best effort: a concurrent initializer may also write; last write wins.
        try:
            await asyncio.wait_for(
                self.store.write(self.identity, balance),
                timeout=self.config.write_timeout,
            )
        except (StoreError, asyncio.TimeoutError):
            logger.exception("Error initializing balance for %s", self.identity)
        else:
            logger.info("Initialized balance for %s: %r", self.identity, balance)

    def _on_init_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Unexpected error initializing balance for %s", self.identity, exc_info=error)

    # ========================================================================
    # TRADING
    # ========================================================================

    async def execute(self, intent: TradeIntent) -> TradeResult:
        """
        Apply an intent to the last snapshot and persist the result.

        Args:
            intent: Action requested by the user

        Returns:
            TradeResult; never raises for user or store faults

        Raises:
            ConfigurationError: If the price oracle returns a non-positive price
        """
        if not self.ready:
            message = LISTEN_FAILURE_MESSAGE if self._listen_error is not None else NOT_READY_MESSAGE
            return self._failure(SessionFailure.NOT_READY, message)
        if self._busy:
            return self._failure(SessionFailure.BUSY, BUSY_MESSAGE)

        price = self.price_oracle.get_price()
        outcome = self.ledger.apply(self._snapshot, intent, price)
        if not outcome.accepted:
            logger.debug("Rejected %r for %s: %s", intent, self.identity, outcome.rejection.value)
            return TradeResult(
                success=False,
                message=describe_rejection(outcome, self.config, self.ledger.min_withdrawal),
                reason=outcome.rejection,
                outcome=outcome,
                balance=self._snapshot,
            )

        self._busy = True
        try:
            await asyncio.wait_for(
                self.store.write(self.identity, outcome.after),
                timeout=self.config.write_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Write timed out for %s after %.1fs: %r",
                           self.identity, self.config.write_timeout, outcome)
            return self._failure(SessionFailure.TIMEOUT, TIMEOUT_MESSAGE, outcome)
        except StoreError:
            logger.exception("Error updating balance for %s", self.identity)
            return self._failure(SessionFailure.PERSISTENCE_FAILURE, PERSISTENCE_FAILURE_MESSAGE, outcome)
        finally:
            self._busy = False

        logger.info("Committed %r for %s", outcome, self.identity)
        return TradeResult(
            success=True,
            message=describe_success(outcome, self.config),
            outcome=outcome,
            balance=self._snapshot,
        )

    def _failure(
        self,
        reason: SessionFailure,
        message: str,
        outcome: Optional[LedgerOutcome] = None,
    ) -> TradeResult:
        return TradeResult(
            success=False,
            message=message,
            reason=reason,
            outcome=outcome,
            balance=self._snapshot,
        )

    # ========================================================================
    # DISPLAY HELPERS
    # ========================================================================

    def display(self) -> Dict[str, str]:
        """Formatted balance for rendering; the default balance before the first push."""
        balance = self._snapshot or self.config.initial_balance
        return {
            'fiat': format_fiat(balance.fiat, self.config.fiat_currency),
            'coin': format_coin(balance.coin),
        }

    def preview(self, intent: TradeIntent) -> str:
        """Approximate coin quantity a buy or sell would move, as shown before confirming."""
        price = self.price_oracle.get_price()
        symbol = self.config.coin_symbol
        if intent.kind is TradeKind.BUY:
            return f"You will receive approximately: {format_coin(quote_buy(intent.amount, price))} {symbol}"
        if intent.kind is TradeKind.SELL:
            return f"This will cost you approximately: {format_coin(quote_sell(intent.amount, price))} {symbol}"
        if intent.kind is TradeKind.WITHDRAW:
            return self.withdrawal_hint()
        return f"Current Price: {format_fiat(price, self.config.fiat_currency)} / {symbol}"

    def withdrawal_hint(self) -> str:
        balance = self._snapshot or self.config.initial_balance
        if self.ledger.can_withdraw(balance):
            return "You are eligible to withdraw your entire balance."
        return f"You need {format_coin(self.ledger.shortfall(balance))} more {self.config.coin_symbol} to withdraw."

    def __repr__(self) -> str:
        state = "ready" if self.ready else "not ready"
        return f"TradeSession({self.identity!r}, {state}, snapshot={self._snapshot!r})"
