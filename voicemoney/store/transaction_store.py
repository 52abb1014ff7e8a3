"""
Transaction Store

DESIGN DECISION: The store holds the authoritative, newest-first list for
the running session and is the only thing allowed to change it.

GUARANTEES:
- Write-through: a mutation is complete only once storage has the new list
- Atomic per record: the new list is built aside, persisted, then swapped
  in. If storage fails, memory is untouched and the error propagates.
- Order is insertion order (newest first), never re-sorted by date
- isModified never goes back to False once set
"""

import asyncio
from typing import Any, Iterator, Optional
from uuid import UUID

from voicemoney.audit import AuditLogger
from voicemoney.models.transaction import Transaction
from voicemoney.services.storage import (
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)


class TransactionStore:
    """In-memory ledger synchronized with a storage backend."""

    def __init__(
        self,
        storage: TransactionStorageInterface,
        transactions: Optional[list[Transaction]] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._transactions: list[Transaction] = list(transactions or [])
        self._audit_logger = audit_logger
        self._lock = asyncio.Lock()

    @classmethod
    async def open(
        cls,
        storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ) -> "TransactionStore":
        """
        Read the persisted collection once and build the store.

        An empty backend gives an empty store.

        Raises:
            CorruptStoreError: Persisted data can't be parsed
        """
        transactions = await storage.read_all()
        if audit_logger:
            audit_logger.log_store_loaded(len(transactions), storage.backend_name)
        return cls(storage, transactions, audit_logger)

    @property
    def storage(self) -> TransactionStorageInterface:
        return self._storage

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        """Snapshot of the collection, newest first."""
        return tuple(self._transactions)

    def __len__(self) -> int:
        return len(self._transactions)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(tuple(self._transactions))

    def get(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in self._transactions:
            if transaction.id == transaction_id:
                return transaction
        return None

    def _index_of(self, transaction_id: str) -> int:
        for index, transaction in enumerate(self._transactions):
            if transaction.id == transaction_id:
                return index
        raise NotFoundError(f"Transaction not found: {transaction_id}")

    async def _commit(
        self,
        updated: list[Transaction],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        try:
            await self._storage.write_all(updated)
        except StorageError as e:
            if self._audit_logger:
                self._audit_logger.log_save_failed(str(e), correlation_id)
            raise
        self._transactions = updated

    async def append(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """Insert a new record at the head and persist the collection."""
        async with self._lock:
            await self._commit([transaction, *self._transactions], correlation_id)

        if self._audit_logger:
            self._audit_logger.log_transaction_created(
                transaction_id=transaction.id,
                category=transaction.category.value,
                amount=transaction.amount,
                correlation_id=correlation_id,
            )
        return transaction

    async def update(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Replace the record with the same id, keeping its position.

        Raises:
            NotFoundError: No record has this id; nothing is written
        """
        async with self._lock:
            index = self._index_of(transaction.id)
            current = self._transactions[index]
            if current.is_modified and not transaction.is_modified:
                transaction = transaction.model_copy(update={"is_modified": True})

            updated = list(self._transactions)
            updated[index] = transaction
            await self._commit(updated, correlation_id)

        if self._audit_logger:
            changed = [
                name for name in type(transaction).model_fields
                if name != "is_modified" and getattr(current, name) != getattr(transaction, name)
            ]
            self._audit_logger.log_transaction_updated(
                transaction_id=transaction.id,
                changed_fields=changed,
                correlation_id=correlation_id,
            )
        return transaction

    async def edit(self, transaction_id: str, **changes: Any) -> Transaction:
        """
        Apply a user edit to one record and save it.

        Raises:
            NotFoundError: No record has this id
            ValueError: Unknown field, id change, or invalid value
        """
        current = self.get(transaction_id)
        if current is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return await self.update(current.apply_edit(**changes))

    async def wipe(self) -> int:
        """Delete every record here and in storage. Returns how many were removed."""
        async with self._lock:
            count = len(self._transactions)
            await self._storage.wipe()
            self._transactions = []

        if self._audit_logger:
            self._audit_logger.log_store_wiped(count)
        return count
