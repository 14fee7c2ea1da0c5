"""
conftest.py - Shared pytest fixtures for coinledger tests

Provides:
- The simulated price and a default Ledger
- An empty in-memory store and a test config with short timeouts
- A started TradeSession bound to the in-memory store
"""

import pytest
import pytest_asyncio

from coinledger import (
    Ledger, InMemoryBalanceStore, SessionConfig, TradeSession,
    StaticPriceOracle,
)

from tests.fake_store import IDENTITY, PRICE


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def price():
    return PRICE


@pytest.fixture
def ledger():
    return Ledger()


@pytest.fixture
def oracle():
    return StaticPriceOracle(PRICE)


@pytest.fixture
def config():
    return SessionConfig(write_timeout=0.5, subscribe_timeout=0.5)


@pytest.fixture
def store():
    return InMemoryBalanceStore()


@pytest_asyncio.fixture
async def session(store, config):
    """Session on an empty store; start() has created the default balance."""
    session = TradeSession(IDENTITY, store, config=config)
    await session.start()
    yield session
    session.stop()
