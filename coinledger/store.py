"""
store.py - Balance document store contract and in-memory implementation

A BalanceStore keeps one two-field document ({fiat, coin}) per user
identity under a namespace, supports point reads, full-replace writes and
push-based change notification.

The store never initializes missing documents; that rule belongs to the
caller (see TradeSession).
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, runtime_checkable

from .core import Balance, DocumentError

logger = logging.getLogger(__name__)


BalanceCallback = Callable[[Optional[Balance]], None]
ErrorCallback = Callable[[Exception], None]


def document_path(namespace: str, identity: str) -> str:
    """Location of an identity's balance document within a namespace."""
    if not namespace or not namespace.strip():
        raise ValueError("namespace cannot be empty")
    if not identity or not identity.strip():
        raise ValueError("identity cannot be empty")
    return f"artifacts/{namespace}/users/{identity}/balances/user"


@dataclass(eq=False)
class Subscription:
    """Handle returned by subscribe(); pass it to unsubscribe()."""
    subscription_id: int
    identity: str
    path: str
    on_change: BalanceCallback
    on_error: ErrorCallback
    active: bool = True

    def __repr__(self) -> str:
        state = "active" if self.active else "closed"
        return f"Subscription(#{self.subscription_id} {self.path} {state})"


@runtime_checkable
class BalanceStore(Protocol):
    """
    Interface the trade session consumes.

    write() is a full-document replace and raises StoreError on failure.
    subscribe() delivers the current document immediately (None when
    absent), then every committed change in commit order. Callbacks run on
    the event loop thread.
    """
    namespace: str

    async def read(self, identity: str) -> Optional[Balance]:
        ...

    async def write(self, identity: str, balance: Balance) -> None:
        ...

    def subscribe(
        self,
        identity: str,
        on_change: BalanceCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        ...

    def unsubscribe(self, subscription: Subscription) -> None:
        ...


class InMemoryBalanceStore:
    """
    Process-local BalanceStore.

    Documents are kept in their persisted two-field form and decoded on
    delivery, so a malformed document reaches subscribers as an error just
    as it would from a remote store. Subscribers are notified synchronously
    when a write commits.

    Not thread-safe. Use one instance per event loop.
    """

    def __init__(self, namespace: str = "trade-coin-app-id", latency: float = 0.0):
        """
        Args:
            namespace: Application namespace all documents live under
            latency: Seconds each read/write suspends before completing
        """
        self.namespace = namespace
        self.latency = latency
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.write_count = 0
        self._subscribers: Dict[str, Dict[int, Subscription]] = {}
        self._ids = itertools.count(1)

    def path_for(self, identity: str) -> str:
        return document_path(self.namespace, identity)

    # ========================================================================
    # BalanceStore PROTOCOL
    # ========================================================================

    async def read(self, identity: str) -> Optional[Balance]:
        """
        Raises:
            DocumentError: If the stored document cannot be decoded
        """
        path = self.path_for(identity)
        await asyncio.sleep(self.latency)
        document = self.documents.get(path)
        if document is None:
            return None
        return Balance.from_document(document)

    async def write(self, identity: str, balance: Balance) -> None:
        path = self.path_for(identity)
        await asyncio.sleep(self.latency)
        self._commit(path, balance.to_document())

    def subscribe(
        self,
        identity: str,
        on_change: BalanceCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        path = self.path_for(identity)
        subscription = Subscription(
            subscription_id=next(self._ids),
            identity=identity,
            path=path,
            on_change=on_change,
            on_error=on_error,
        )
        self._subscribers.setdefault(path, {})[subscription.subscription_id] = subscription
        logger.debug("Subscribed %r", subscription)
        self._deliver(subscription, self.documents.get(path))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.active = False
        self._subscribers.get(subscription.path, {}).pop(subscription.subscription_id, None)

    # ========================================================================
    # SIMULATION HOOKS
    # ========================================================================

    def put_document(self, identity: str, document: Mapping[str, Any]) -> None:
        """
        Replace a raw document, as another client would.

        The document is stored as given (no validation) and pushed to
        subscribers.
        """
        self._commit(self.path_for(identity), dict(document))

    def fail_subscriptions(self, identity: str, error: Exception) -> int:
        """
        Break every subscription on an identity's document.

        Each subscriber gets `error` through on_error and is closed.
        Returns the number of subscriptions broken.
        """
        path = self.path_for(identity)
        broken = list(self._subscribers.pop(path, {}).values())
        for subscription in broken:
            subscription.active = False
            subscription.on_error(error)
        return len(broken)

    def delete_document(self, identity: str) -> None:
        """Remove a document, as another client would, and push None to subscribers."""
        path = self.path_for(identity)
        self.documents.pop(path, None)
        logger.debug("Deleted %s", path)
        self._publish(path, None)

    def subscriber_count(self, identity: str) -> int:
        return len(self._subscribers.get(self.path_for(identity), {}))

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _commit(self, path: str, document: Dict[str, Any]) -> None:
        self.documents[path] = document
        self.write_count += 1
        logger.debug("Committed %s: %s", path, document)
        self._publish(path, document)

    def _publish(self, path: str, document: Optional[Dict[str, Any]]) -> None:
        for subscription in list(self._subscribers.get(path, {}).values()):
            try:
                self._deliver(subscription, document)
            except Exception:
                logger.exception("Subscriber %r failed on push to %s", subscription, path)

    def _deliver(self, subscription: Subscription, document: Optional[Mapping[str, Any]]) -> None:
        if not subscription.active:
            return
        if document is None:
            subscription.on_change(None)
            return
        try:
            balance = Balance.from_document(document)
        except DocumentError as e:
            logger.warning("Undecodable document at %s: %s", subscription.path, e)
            self.unsubscribe(subscription)
            subscription.on_error(e)
            return
        subscription.on_change(balance)

    def __repr__(self) -> str:
        return f"InMemoryBalanceStore({self.namespace!r}, {len(self.documents)} documents)"
