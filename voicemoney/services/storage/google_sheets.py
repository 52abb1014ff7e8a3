"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as the remote backend because:
1. The ledger can be viewed (and shared) directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Every mutation rewrites the worksheet (the ledger is small)
- No transactions; the sheet is overwritten first and truncated after,
  so a failed write never leaves an empty sheet behind
- Column headers use the same camelCase keys as the JSON blob

The implementation follows the abstract interface, so the store does not
know which backend it talks to.
"""

import asyncio
from typing import Any, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from voicemoney.config import GoogleSheetsSettings, get_settings
from voicemoney.models.transaction import Transaction
from voicemoney.services.storage.interface import (
    ConnectionError,
    CorruptStoreError,
    StorageError,
    TransactionStorageInterface,
)

logger = structlog.get_logger(__name__)


# Column order for the Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "date",
    "type",
    "amount",
    "merchant",
    "method",
    "category",
    "subcategory",
    "reason",
    "emotion",
    "diary",
    "impulseScore",
    "transcript",
    "audioUrl",
    "isModified",
]

# Blank cells in these columns read back as the field default
_BLANK_DEFAULTS = {"subcategory": None, "audioUrl": None, "isModified": False}


def transaction_to_row(transaction: Transaction) -> list[str]:
    """Convert a Transaction to a spreadsheet row."""
    data = transaction.to_storage_dict()
    row = []
    for column in TRANSACTION_COLUMNS:
        value = data.get(column)
        if value is None:
            row.append("")
        elif isinstance(value, bool):
            row.append("true" if value else "false")
        else:
            row.append(str(value))
    return row


def row_to_transaction(row: list[str]) -> Transaction:
    """Convert a spreadsheet row back to a Transaction."""
    # Sheets drops trailing empty cells
    padded = list(row) + [""] * (len(TRANSACTION_COLUMNS) - len(row))
    data: dict[str, Any] = {}
    for column, value in zip(TRANSACTION_COLUMNS, padded):
        if column in _BLANK_DEFAULTS and value == "":
            data[column] = _BLANK_DEFAULTS[column]
        else:
            data[column] = value
    return Transaction.model_validate(data)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.transactions_sheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.transactions_sheet_name,
                rows=1000,
                cols=len(TRANSACTION_COLUMNS),
            )
            sheet.append_row(TRANSACTION_COLUMNS)
        return sheet


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of transaction storage.

    One transaction per row, newest first, under a header row.
    """

    backend_name = "google_sheets"

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _read_all_sync(self) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read transactions: {e}") from e

        transactions = []
        # Row 1 is the header
        for row_number, row in enumerate(all_rows[1:], start=2):
            if not any(cell.strip() for cell in row):
                continue
            try:
                transactions.append(row_to_transaction(row))
            except ValidationError as e:
                raise CorruptStoreError(
                    f"Row {row_number} of the transactions sheet is malformed: {e}"
                ) from e
        return transactions

    def _write_all_sync(self, transactions: list[Transaction]) -> None:
        values = [TRANSACTION_COLUMNS] + [transaction_to_row(tx) for tx in transactions]
        try:
            sheet = self._client.get_transactions_sheet()
            if len(values) > sheet.row_count:
                sheet.add_rows(len(values) - sheet.row_count)
            sheet.update(range_name="A1", values=values)
            # Drop whatever the previous, longer ledger left below
            sheet.resize(rows=len(values))
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write transactions: {e}") from e

    def _wipe_sync(self) -> None:
        try:
            sheet = self._client.get_transactions_sheet()
            sheet.clear()
            sheet.update(range_name="A1", values=[TRANSACTION_COLUMNS])
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to clear transactions sheet: {e}") from e

    async def read_all(self) -> list[Transaction]:
        return await asyncio.to_thread(self._read_all_sync)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def write_all(self, transactions: list[Transaction]) -> None:
        await asyncio.to_thread(self._write_all_sync, list(transactions))
        logger.debug("sheets_store_written", count=len(transactions))

    async def wipe(self) -> None:
        await asyncio.to_thread(self._wipe_sync)
        logger.info("sheets_store_wiped")
