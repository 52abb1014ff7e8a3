"""
In-memory storage.

Holds the serialized blob rather than the objects themselves, so anything
that survives a write here would also survive a real backend.
"""

from typing import Optional

from pydantic import ValidationError

from voicemoney.models.transaction import (
    Transaction,
    dump_transactions,
    load_transactions,
)
from voicemoney.services.storage.interface import (
    CorruptStoreError,
    TransactionStorageInterface,
)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Process-local storage used by tests and when nothing is configured."""

    backend_name = "memory"

    def __init__(self, blob: Optional[str] = None):
        self._blob = blob
        self.write_count = 0

    @property
    def blob(self) -> Optional[str]:
        return self._blob

    async def read_all(self) -> list[Transaction]:
        if self._blob is None:
            return []
        try:
            return load_transactions(self._blob)
        except ValidationError as e:
            raise CorruptStoreError(f"Stored transactions are malformed: {e}") from e

    async def write_all(self, transactions: list[Transaction]) -> None:
        self._blob = dump_transactions(transactions)
        self.write_count += 1

    async def wipe(self) -> None:
        self._blob = None
