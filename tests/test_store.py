"""
test_store.py - Unit tests for store.py

Tests:
- document_path: layout and validation
- InMemoryBalanceStore: read, write, subscription delivery order
- Malformed documents, broken subscriptions, unsubscribe
"""

import pytest
from decimal import Decimal

from coinledger import (
    Balance, BalanceStore, DocumentError, InMemoryBalanceStore, StoreError,
    document_path,
)

from tests.fake_store import IDENTITY, seed, stored_balance


class Recorder:
    """Collects on_change and on_error callbacks."""

    def __init__(self):
        self.changes = []
        self.errors = []

    def on_change(self, balance):
        self.changes.append(balance)

    def on_error(self, error):
        self.errors.append(error)


class TestDocumentPath:

    def test_layout(self):
        assert document_path("app", "u1") == "artifacts/app/users/u1/balances/user"

    @pytest.mark.parametrize("namespace,identity", [("", "u1"), ("app", ""), ("  ", "u1"), ("app", None)])
    def test_empty_parts_raise(self, namespace, identity):
        with pytest.raises(ValueError):
            document_path(namespace, identity)

    def test_store_uses_namespace(self):
        store = InMemoryBalanceStore(namespace="demo")
        assert store.path_for("u1") == "artifacts/demo/users/u1/balances/user"


class TestReadWrite:

    @pytest.mark.asyncio
    async def test_read_missing_document(self, store):
        assert await store.read(IDENTITY) is None

    @pytest.mark.asyncio
    async def test_write_then_read(self, store):
        await store.write(IDENTITY, Balance(500, "0.25"))
        assert await store.read(IDENTITY) == Balance(500, "0.25")
        assert store.write_count == 1

    @pytest.mark.asyncio
    async def test_write_is_full_replace(self, store):
        store.put_document(IDENTITY, {'fiat': 1, 'coin': 2, 'note': 'x'})
        await store.write(IDENTITY, Balance(3, 4))
        assert store.documents[store.path_for(IDENTITY)] == {'fiat': Decimal("3"), 'coin': Decimal("4")}

    @pytest.mark.asyncio
    async def test_identities_are_isolated(self, store):
        await store.write("alice", Balance(1, 0))
        await store.write("bob", Balance(2, 0))
        assert await store.read("alice") == Balance(1, 0)
        assert await store.read("bob") == Balance(2, 0)

    @pytest.mark.asyncio
    async def test_read_malformed_document_raises(self, store):
        store.put_document(IDENTITY, {'fiat': 'lots', 'coin': 0})
        with pytest.raises(DocumentError):
            await store.read(IDENTITY)

    @pytest.mark.asyncio
    async def test_read_lenient_document(self, store):
        store.put_document(IDENTITY, {'coin': 5})
        assert await store.read(IDENTITY) == Balance(0, 5)

    def test_satisfies_protocol(self, store):
        assert isinstance(store, BalanceStore)


class TestSubscriptions:

    def test_subscribe_missing_document_delivers_none(self, store):
        recorder = Recorder()
        store.subscribe(IDENTITY, recorder.on_change, recorder.on_error)
        assert recorder.changes == [None]
        assert recorder.errors == []

    def test_subscribe_delivers_current_document(self, store):
        seed(store, 10, 1)
        recorder = Recorder()
        store.subscribe(IDENTITY, recorder.on_change, recorder.on_error)
        assert recorder.changes == [Balance(10, 1)]

    @pytest.mark.asyncio
    async def test_changes_delivered_in_commit_order(self, store):
        recorder = Recorder()
        store.subscribe(IDENTITY, recorder.on_change, recorder.on_error)
        await store.write(IDENTITY, Balance(1, 0))
        await store.write(IDENTITY, Balance(2, 0))
        seed(store, 3, 0)
        assert recorder.changes == [None, Balance(1, 0), Balance(2, 0), Balance(3, 0)]

    @pytest.mark.asyncio
    async def test_other_identities_not_delivered(self, store):
        recorder = Recorder()
        store.subscribe(IDENTITY, recorder.on_change, recorder.on_error)
        await store.write("someone-else", Balance(1, 0))
        assert recorder.changes == [None]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self, store):
        recorder = Recorder()
        subscription = store.subscribe(IDENTITY, recorder.on_change, recorder.on_error)
        store.unsubscribe(subscription)
        await store.write(IDENTITY, Balance(1, 0))
        assert recorder.changes == [None]
        assert not subscription.active
        assert store.subscriber_count(IDENTITY) == 0

    def test_unsubscribe_twice_is_harmless(self, store):
        recorder = Recorder()
        subscription = store.subscribe(IDENTITY, recorder.on_change, recorder.on_error)
        store.unsubscribe(subscription)
        store.unsubscribe(subscription)
        assert store.subscriber_count(IDENTITY) == 0

    def test_multiple_subscribers(self, store):
        first, second = Recorder(), Recorder()
        store.subscribe(IDENTITY, first.on_change, first.on_error)
        store.subscribe(IDENTITY, second.on_change, second.on_error)
        seed(store, 7, 0)
        assert first.changes[-1] == second.changes[-1] == Balance(7, 0)
        assert store.subscriber_count(IDENTITY) == 2

    def test_malformed_push_reports_error_and_closes(self, store):
        recorder = Recorder()
        subscription = store.subscribe(IDENTITY, recorder.on_change, recorder.on_error)
        store.put_document(IDENTITY, {'fiat': -1, 'coin': 0})
        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], DocumentError)
        assert not subscription.active
        seed(store, 1, 0)
        assert recorder.changes == [None]

    def test_fail_subscriptions(self, store):
        recorder = Recorder()
        subscription = store.subscribe(IDENTITY, recorder.on_change, recorder.on_error)
        error = StoreError("connection lost")
        assert store.fail_subscriptions(IDENTITY, error) == 1
        assert recorder.errors == [error]
        assert not subscription.active
        assert store.fail_subscriptions(IDENTITY, error) == 0

    def test_subscription_repr(self, store):
        recorder = Recorder()
        subscription = store.subscribe(IDENTITY, recorder.on_change, recorder.on_error)
        assert "active" in repr(subscription)
        store.unsubscribe(subscription)
        assert "closed" in repr(subscription)


class TestDeliveryIsolation:

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_block_others(self, store, caplog):
        def broken(balance):
            if balance is not None:
                raise RuntimeError("render failed")

        later = Recorder()
        store.subscribe(IDENTITY, broken, later.on_error)
        store.subscribe(IDENTITY, later.on_change, later.on_error)

        await store.write(IDENTITY, Balance(5, 0))

        assert later.changes[-1] == Balance(5, 0)
        assert "failed on push" in caplog.text
        assert stored_balance(store) == Balance(5, 0)

    def test_delete_document_pushes_none(self, store):
        seed(store, 1, 1)
        recorder = Recorder()
        store.subscribe(IDENTITY, recorder.on_change, recorder.on_error)
        store.delete_document(IDENTITY)
        assert recorder.changes == [Balance(1, 1), None]
        assert store.path_for(IDENTITY) not in store.documents
