#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Trading Ledger Step by Step

This is a pedagogical demonstration of how a trading session keeps a
user's fiat/coin balance. Each step builds on the previous one. Press
Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation   - Connecting a session, the default balance, deposits
  4-6:  Trading      - Quotes, buying, rejections, selling
  7:    Withdrawal   - The all-or-nothing minimum rule
  8-9:  Sync         - Two tabs on one identity, a dropped connection
  10:   Rules alone  - The pure Ledger without any store

Run:
    python demo.py             # Interactive mode (press Enter for each step)
    python demo.py --quick     # Run all steps without pausing
    python demo.py --verbose   # Also show coinledger log output
"""

from dataclasses import dataclass
from decimal import Decimal
import asyncio
import logging
import sys

from coinledger import (
    # Core types
    Balance, TradeIntent, StoreError,
    # Rules
    Ledger,
    # Session and storage
    TradeSession, InMemoryBalanceStore, SessionConfig,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    identity: str = "alice"

    deposit: Decimal = Decimal("9000.00")
    buy: Decimal = Decimal("6850.00")
    sell: Decimal = Decimal("3425.00")

    # Enough to reach the 100 coin withdrawal minimum at the default price
    whale_deposit: Decimal = Decimal("7000000.00")
    whale_buy: Decimal = Decimal("6850000.00")

    # Simulated store round trip
    store_latency: float = 0.01


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def show(session: TradeSession, label: str = "Balance"):
    shown = session.display()
    print(f"  {label}: {shown['fiat']}  |  {shown['coin']} {session.config.coin_symbol}")


def show_result(result):
    status = "OK " if result.success else "NO "
    reason = f" [{result.reason.value}]" if result.reason else ""
    print(f"  {status} {result.message}{reason}")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

async def step_01_connect(store: InMemoryBalanceStore) -> TradeSession:
    step_header(1, "Connecting a Session",
        "See that a session trades only after the store has pushed a balance.")

    session = TradeSession(CONFIG.identity, store)
    print(f"  Before start(): ready={session.ready}")
    result = await session.execute(TradeIntent.deposit(10))
    show_result(result)

    await session.start()
    print(f"\n  After start():  ready={session.ready}")
    print(f"  Document path:  {store.path_for(CONFIG.identity)}")
    return session


async def step_02_default_balance(session: TradeSession, store: InMemoryBalanceStore):
    step_header(2, "The Default Balance",
        "Understand that a new identity starts with 1,000 fiat and no coin.")

    show(session)
    print(f"  Stored document: {store.documents[store.path_for(CONFIG.identity)]}")
    print(f"  Store writes so far: {store.write_count}")
    print("""
    No document existed, so the session showed the default balance
    immediately and wrote it once. Starting again will not rewrite it.
    """)


async def step_03_deposit(session: TradeSession):
    step_header(3, "Deposit",
        "Add fiat. The snapshot changes only when the store pushes the write back.")

    pushed = []
    session.add_watcher(pushed.append)
    result = await session.execute(TradeIntent.deposit(CONFIG.deposit))
    session.remove_watcher(pushed.append)

    show_result(result)
    show(session)
    print(f"  Snapshots pushed during the deposit: {pushed}")


# ============================================================================
# PHASE 2: TRADING (Steps 4-6)
# ============================================================================

async def step_04_buy(session: TradeSession):
    step_header(4, "Buying Coin",
        "Quote a purchase, then execute it at the simulated price.")

    print(f"  {session.preview(TradeIntent.deposit(0))}")
    print(f"  {session.preview(TradeIntent.buy(CONFIG.buy))}")
    result = await session.execute(TradeIntent.buy(CONFIG.buy))
    show_result(result)
    show(session)


async def step_05_rejections(session: TradeSession):
    step_header(5, "Rejections",
        "See that invalid or unaffordable intents never reach the store.")

    writes_before = session.store.write_count
    for intent in [
        TradeIntent.buy(""),
        TradeIntent.buy(-20),
        TradeIntent.buy(Decimal("1000000")),
        TradeIntent.sell(Decimal("1000000")),
    ]:
        print(f"  {intent!r}")
        show_result(await session.execute(intent))
    print(f"\n  Store writes caused: {session.store.write_count - writes_before}")


async def step_06_sell(session: TradeSession):
    step_header(6, "Selling Coin",
        "Sell coin for a fiat amount; the coin cost is amount / price.")

    print(f"  {session.preview(TradeIntent.sell(CONFIG.sell))}")
    result = await session.execute(TradeIntent.sell(CONFIG.sell))
    show_result(result)
    show(session)


# ============================================================================
# PHASE 3: WITHDRAWAL (Step 7)
# ============================================================================

async def step_07_withdraw(session: TradeSession):
    step_header(7, "Withdrawal",
        "Withdraw is all-or-nothing and needs a minimum coin balance.")

    print(f"  {session.withdrawal_hint()}")
    show_result(await session.execute(TradeIntent.withdraw()))

    section_header("Becoming eligible")
    await session.execute(TradeIntent.deposit(CONFIG.whale_deposit))
    await session.execute(TradeIntent.buy(CONFIG.whale_buy))
    show(session)
    print(f"  {session.withdrawal_hint()}")
    show_result(await session.execute(TradeIntent.withdraw()))
    show(session)


# ============================================================================
# PHASE 4: SYNC (Steps 8-9)
# ============================================================================

async def step_08_two_tabs(session: TradeSession, store: InMemoryBalanceStore):
    step_header(8, "Two Tabs, One Identity",
        "Every session on an identity sees each committed write.")

    other_tab = TradeSession(CONFIG.identity, store)
    await other_tab.start()
    show(other_tab, "Tab B")

    await session.execute(TradeIntent.deposit(100))
    show(session, "Tab A")
    show(other_tab, "Tab B")

    section_header("Racing writes")
    slow_store = InMemoryBalanceStore(latency=CONFIG.store_latency)
    slow_store.put_document("bob", Balance(1000, 0).to_document())
    tab_a, tab_b = TradeSession("bob", slow_store), TradeSession("bob", slow_store)
    await tab_a.start()
    await tab_b.start()
    results = await asyncio.gather(
        tab_a.execute(TradeIntent.buy(500)),
        tab_b.execute(TradeIntent.buy(500)),
    )
    for result in results:
        show_result(result)
    show(tab_a, "Final")
    print("""
    Both tabs evaluated against 1,000 fiat and both writes succeeded.
    Writes are full replaces, so the second overwrote the first.
    """)
    for tab in (other_tab, tab_a, tab_b):
        tab.stop()


async def step_09_dropped_connection(session: TradeSession, store: InMemoryBalanceStore):
    step_header(9, "A Dropped Connection",
        "A broken subscription blocks trading until the session resubscribes.")

    store.fail_subscriptions(CONFIG.identity, StoreError("network unreachable"))
    print(f"  Status: {session.status_message}")
    show_result(await session.execute(TradeIntent.deposit(1)))

    await session.resubscribe()
    print(f"\n  After resubscribe(): ready={session.ready}")
    show_result(await session.execute(TradeIntent.deposit(1)))


# ============================================================================
# PHASE 5: RULES ALONE (Step 10)
# ============================================================================

def step_10_pure_ledger():
    step_header(10, "The Ledger on Its Own",
        "The rules are pure functions of (balance, intent, price).")

    ledger = Ledger(min_withdrawal=Decimal("1"))
    start = Balance(Decimal("1000"), Decimal("0"))
    for price in [Decimal("50000"), Decimal("68500"), Decimal("100000")]:
        outcome = ledger.apply(start, TradeIntent.buy(500), price)
        print(f"  at {price:>8}: {outcome!r}")

    config = SessionConfig.from_env()
    print(f"\n  SessionConfig.from_env(): price={config.coin_price}, "
          f"min_withdrawal={config.min_withdrawal}, namespace={config.namespace!r}")


# ============================================================================
# MAIN
# ============================================================================

async def run():
    store = InMemoryBalanceStore(latency=CONFIG.store_latency)

    session = await step_01_connect(store)
    wait_for_enter()

    await step_02_default_balance(session, store)
    wait_for_enter()

    await step_03_deposit(session)
    wait_for_enter()

    await step_04_buy(session)
    wait_for_enter()

    await step_05_rejections(session)
    wait_for_enter()

    await step_06_sell(session)
    wait_for_enter()

    await step_07_withdraw(session)
    wait_for_enter()

    await step_08_two_tabs(session, store)
    wait_for_enter()

    await step_09_dropped_connection(session, store)
    wait_for_enter()

    step_10_pure_ledger()
    session.stop()


def main():
    logging.basicConfig(
        level=logging.INFO if "--verbose" in sys.argv else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    print("""
    ======================================================================
                 COINLEDGER TUTORIAL: A TRADING SESSION
    ======================================================================
    """)
    asyncio.run(run())

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:
      - The store's push, not the write acknowledgment, updates the balance
      - Rejections never touch the store
      - Withdraw takes the whole coin balance once the minimum is reached
      - Writes are full replaces; the last writer wins

    Next steps:
      - See coinledger/ledger.py for the rules
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
