"""Transaction store package."""

from voicemoney.store.transaction_store import TransactionStore

__all__ = ["TransactionStore"]
