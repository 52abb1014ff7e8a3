"""
Abstract Storage Interface

DESIGN DECISION: The ledger is persisted through a deliberately tiny port:
read everything, write everything, wipe everything. This allows us to:
1. Keep the whole collection as one blob (a single JSON array)
2. Use in-memory storage for testing
3. Swap the JSON file for Google Sheets without touching the store

There is no per-record API on purpose. The Transaction Store owns ordering
and identity; storage only has to round-trip the list faithfully.
"""

from abc import ABC, abstractmethod

from voicemoney.models.transaction import Transaction


class TransactionStorageInterface(ABC):
    """
    Abstract interface for durable transaction storage.

    Any storage implementation (JSON file, Google Sheets, etc.)
    must implement these methods.
    """

    #: Short name shown in logs and on the settings page
    backend_name: str = "unknown"

    @abstractmethod
    async def read_all(self) -> list[Transaction]:
        """
        Load the whole collection, in stored (newest-first) order.

        Returns:
            The stored transactions; an empty list when nothing was
            ever written.

        Raises:
            CorruptStoreError: If stored data exists but can't be parsed
            StorageError: If the backend can't be read
        """
        pass

    @abstractmethod
    async def write_all(self, transactions: list[Transaction]) -> None:
        """
        Replace the stored collection with the given one.

        Raises:
            StorageError: If the write fails. The previous contents must
                then still be readable.
        """
        pass

    @abstractmethod
    async def wipe(self) -> None:
        """
        Delete all persisted state. Irreversible.

        Raises:
            StorageError: If the backend can't be cleared
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class CorruptStoreError(StorageError):
    """Persisted data exists but is not a valid transaction array."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
