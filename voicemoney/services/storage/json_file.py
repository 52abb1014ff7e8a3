"""
JSON File Storage Implementation

DESIGN DECISION: The default backend mirrors the browser's localStorage:
one JSON document acting as a key-value store, with the transaction array
kept under a single well-known key. Wiping removes the whole document.

TRADEOFFS:
- Whole-file rewrite on every mutation (fine for a personal ledger)
- No schema versioning; the array is the format
- Writes go to a temp file first and are swapped in with os.replace,
  so a crash mid-write leaves the previous ledger intact
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from voicemoney.config import get_settings
from voicemoney.models.transaction import Transaction, TransactionList
from voicemoney.services.storage.interface import (
    CorruptStoreError,
    StorageError,
    TransactionStorageInterface,
)

logger = structlog.get_logger(__name__)


class JsonFileStorage(TransactionStorageInterface):
    """Key-value JSON document on local disk."""

    backend_name = "json_file"

    def __init__(
        self,
        path: Optional[Path] = None,
        storage_key: Optional[str] = None,
    ):
        if path is None or storage_key is None:
            settings = get_settings().storage
            path = path or settings.data_path
            storage_key = storage_key or settings.storage_key
        self._path = Path(path)
        self._key = storage_key

    @property
    def path(self) -> Path:
        return self._path

    def _read_document(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            raw = self._path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise CorruptStoreError(f"{self._path} is not valid UTF-8: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {self._path}: {e}") from e
        if not raw.strip():
            return {}
        try:
            document = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptStoreError(f"{self._path} is not valid JSON: {e}") from e
        if not isinstance(document, dict):
            raise CorruptStoreError(
                f"{self._path} must hold a JSON object, found {type(document).__name__}"
            )
        return document

    def _write_document(self, document: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, ensure_ascii=False, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Failed to write {self._path}: {e}") from e

    def _read_all_sync(self) -> list[Transaction]:
        document = self._read_document()
        stored = document.get(self._key)
        if stored is None:
            return []
        try:
            return TransactionList.validate_python(stored)
        except ValidationError as e:
            raise CorruptStoreError(
                f"Stored transactions under '{self._key}' are malformed: {e}"
            ) from e

    def _write_all_sync(self, transactions: list[Transaction]) -> None:
        # Other keys in the document are left alone
        document = self._read_document()
        document[self._key] = [tx.to_storage_dict() for tx in transactions]
        self._write_document(document)

    def _wipe_sync(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {self._path}: {e}") from e

    async def read_all(self) -> list[Transaction]:
        transactions = await asyncio.to_thread(self._read_all_sync)
        logger.debug("json_store_read", path=str(self._path), count=len(transactions))
        return transactions

    async def write_all(self, transactions: list[Transaction]) -> None:
        await asyncio.to_thread(self._write_all_sync, list(transactions))
        logger.debug("json_store_written", path=str(self._path), count=len(transactions))

    async def wipe(self) -> None:
        await asyncio.to_thread(self._wipe_sync)
        logger.info("json_store_wiped", path=str(self._path))
