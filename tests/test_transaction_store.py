"""Tests for the write-through transaction store."""

import pytest

from voicemoney.models.audit import AuditEventType
from voicemoney.models.transaction import Category, dump_transactions
from voicemoney.services.storage import (
    CorruptStoreError,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
)
from voicemoney.store import TransactionStore

from tests.conftest import BrokenSink, make_transaction, run


@pytest.fixture
def seeded_storage(storage):
    run(storage.write_all([
        make_transaction(id="newest", amount=3000),
        make_transaction(id="middle", amount=4500),
        make_transaction(id="oldest", amount=12000),
    ]))
    return storage


class TestOpen:

    def test_empty_storage_gives_empty_store(self):
        store = run(TransactionStore.open(InMemoryTransactionStorage()))

        assert len(store) == 0
        assert store.transactions == ()

    def test_loads_in_stored_order(self, seeded_storage, audit_logger):
        store = run(TransactionStore.open(seeded_storage, audit_logger))

        assert [t.id for t in store] == ["newest", "middle", "oldest"]
        assert audit_logger.recent_events()[0].event_type == AuditEventType.STORE_LOADED

    def test_corrupt_storage_raises(self):
        storage = InMemoryTransactionStorage(blob='{"not": "an array"}')

        with pytest.raises(CorruptStoreError):
            run(TransactionStore.open(storage))


class TestAppend:

    def test_new_record_goes_to_head(self, seeded_storage):
        store = run(TransactionStore.open(seeded_storage))
        new = make_transaction(id="brand-new", date=make_transaction().date.replace(year=2020))

        run(store.append(new))

        assert len(store) == 4
        assert store.transactions[0].id == "brand-new"

    def test_append_is_written_through(self, storage):
        store = run(TransactionStore.open(storage))

        run(store.append(make_transaction(id="a")))

        assert [t.id for t in run(storage.read_all())] == ["a"]

    def test_broken_log_sink_does_not_lose_append(self, storage, audit_logger):
        audit_logger._logger = BrokenSink()
        store = run(TransactionStore.open(storage, audit_logger))

        run(store.append(make_transaction(id="a")))

        assert [t.id for t in run(storage.read_all())] == ["a"]
        assert audit_logger.recent_events()[0].event_type == AuditEventType.TRANSACTION_CREATED

    def test_failed_write_leaves_memory_untouched(self, seeded_storage, audit_logger):
        store = run(TransactionStore.open(seeded_storage, audit_logger))
        seeded_storage.fail_writes = True

        with pytest.raises(StorageError):
            run(store.append(make_transaction(id="lost")))

        assert len(store) == 3
        assert store.get("lost") is None
        assert audit_logger.recent_events()[0].event_type == AuditEventType.SAVE_FAILED


class TestUpdate:

    def test_replaces_in_place(self, seeded_storage):
        store = run(TransactionStore.open(seeded_storage))
        replacement = store.get("middle").model_copy(update={"amount": 5000})

        run(store.update(replacement))

        assert [t.id for t in store] == ["newest", "middle", "oldest"]
        assert store.get("middle").amount == 5000
        assert run(seeded_storage.read_all())[1].amount == 5000

    def test_unknown_id_raises_and_writes_nothing(self, seeded_storage):
        store = run(TransactionStore.open(seeded_storage))
        writes_before = seeded_storage.write_count

        with pytest.raises(NotFoundError):
            run(store.update(make_transaction(id="missing")))

        assert seeded_storage.write_count == writes_before

    def test_modified_flag_never_cleared(self, seeded_storage):
        store = run(TransactionStore.open(seeded_storage))
        run(store.edit("middle", amount=5000))

        run(store.update(store.get("middle").model_copy(update={"is_modified": False})))

        assert store.get("middle").is_modified is True

    def test_failed_write_keeps_old_record(self, seeded_storage):
        store = run(TransactionStore.open(seeded_storage))
        seeded_storage.fail_writes = True

        with pytest.raises(StorageError):
            run(store.edit("middle", amount=1))

        assert store.get("middle").amount == 4500
        assert store.get("middle").is_modified is False


class TestEdit:

    def test_edit_amount(self, seeded_storage, audit_logger):
        store = run(TransactionStore.open(seeded_storage, audit_logger))
        before = store.get("middle")

        edited = run(store.edit("middle", amount=5000))

        assert edited.amount == 5000
        assert edited.is_modified is True
        assert edited.model_dump(exclude={"amount", "is_modified"}) == \
            before.model_dump(exclude={"amount", "is_modified"})
        event = audit_logger.recent_events()[0]
        assert event.event_type == AuditEventType.TRANSACTION_UPDATED
        assert event.details["changed_fields"] == ["amount"]

    def test_edit_category(self, seeded_storage):
        store = run(TransactionStore.open(seeded_storage))

        run(store.edit("oldest", category=Category.HEALTH, subcategory="약"))

        assert store.get("oldest").category == Category.HEALTH

    def test_edit_unknown_id(self, seeded_storage):
        store = run(TransactionStore.open(seeded_storage))

        with pytest.raises(NotFoundError):
            run(store.edit("missing", amount=1))

    def test_edit_invalid_value(self, seeded_storage):
        store = run(TransactionStore.open(seeded_storage))

        with pytest.raises(ValueError):
            run(store.edit("middle", amount=-5))

        assert store.get("middle").amount == 4500


class TestWipe:

    def test_wipe_clears_memory_and_storage(self, seeded_storage):
        store = run(TransactionStore.open(seeded_storage))

        removed = run(store.wipe())

        assert removed == 3
        assert len(store) == 0
        assert seeded_storage.blob is None
        assert run(seeded_storage.read_all()) == []


class TestInMemoryStorage:

    def test_round_trip_preserves_every_field(self):
        storage = InMemoryTransactionStorage()
        transactions = [
            make_transaction(id="a", audio_url="artifact:1", is_modified=True),
            make_transaction(id="b", subcategory=None, merchant=""),
        ]

        run(storage.write_all(transactions))

        assert run(storage.read_all()) == transactions
        assert storage.blob == dump_transactions(transactions)
