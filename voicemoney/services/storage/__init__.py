"""
Storage Services Package

Provides the storage port and its implementations. The JSON file backend is
the default; Google Sheets and in-memory storage are drop-in alternatives.
"""

from voicemoney.services.storage.interface import (
    ConnectionError,
    CorruptStoreError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from voicemoney.services.storage.json_file import JsonFileStorage
from voicemoney.services.storage.memory import InMemoryTransactionStorage
from voicemoney.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
)

__all__ = [
    # Interface
    "TransactionStorageInterface",
    # Exceptions
    "ConnectionError",
    "CorruptStoreError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    "InMemoryTransactionStorage",
    "JsonFileStorage",
]
