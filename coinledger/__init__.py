"""
coinledger - Simulated fiat/coin trading ledger

Balance rules and trade execution for a single-user crypto-trading
dashboard backed by a push-synchronized document store.

Usage:
    from coinledger import TradeSession, TradeIntent, InMemoryBalanceStore

    store = InMemoryBalanceStore()
    session = TradeSession("user-1", store)
    await session.start()                 # creates {fiat: 1000, coin: 0} if absent

    result = await session.execute(TradeIntent.buy(500))
    result.message                        # "Purchase of 0.0073 BTC successful!"
    session.display()                     # {'fiat': '$500.00', 'coin': '0.0073'}

    # The rules are pure and usable on their own
    from coinledger import Ledger, Balance
    outcome = Ledger().apply(Balance(1000, 0), TradeIntent.buy(500), Decimal("68500"))
"""

# Core types
from .core import (
    Balance,
    TradeIntent,
    TradeKind,
    Rejection,
    SessionFailure,
    LedgerError,
    ConfigurationError,
    StoreError,
    DocumentError,
    parse_amount,
    format_fiat,
    format_coin,
    round_for_display,
    DEFAULT_COIN_PRICE,
    DEFAULT_MIN_WITHDRAWAL,
    DEFAULT_FIAT_CURRENCY,
    DEFAULT_COIN_SYMBOL,
)

# Ledger rules
from .ledger import (
    Ledger,
    LedgerOutcome,
    compute_deposit,
    compute_buy,
    compute_sell,
    quote_buy,
    quote_sell,
    withdrawal_shortfall,
)

# Pricing
from .pricing_source import (
    PriceOracle,
    StaticPriceOracle,
    TimeSeriesPriceOracle,
)

# Storage
from .store import (
    BalanceStore,
    InMemoryBalanceStore,
    Subscription,
    document_path,
)

# Configuration
from .config import SessionConfig

# Session
from .session import (
    TradeSession,
    TradeResult,
    describe_rejection,
    describe_success,
)

__all__ = [
    # Core
    'Balance', 'TradeIntent', 'TradeKind', 'Rejection', 'SessionFailure',
    'LedgerError', 'ConfigurationError', 'StoreError', 'DocumentError',
    'parse_amount', 'format_fiat', 'format_coin', 'round_for_display',
    'DEFAULT_COIN_PRICE', 'DEFAULT_MIN_WITHDRAWAL',
    'DEFAULT_FIAT_CURRENCY', 'DEFAULT_COIN_SYMBOL',
    # Ledger
    'Ledger', 'LedgerOutcome',
    'compute_deposit', 'compute_buy', 'compute_sell',
    'quote_buy', 'quote_sell', 'withdrawal_shortfall',
    # Pricing
    'PriceOracle', 'StaticPriceOracle', 'TimeSeriesPriceOracle',
    # Storage
    'BalanceStore', 'InMemoryBalanceStore', 'Subscription', 'document_path',
    # Configuration
    'SessionConfig',
    # Session
    'TradeSession', 'TradeResult', 'describe_rejection', 'describe_success',
]

__version__ = '1.0.0'
