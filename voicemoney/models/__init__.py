"""
Data Models Package

This package contains all Pydantic models used in VoiceMoney.
All data flowing through the system must conform to these schemas.
"""

from voicemoney.models.transaction import (
    CATEGORY_COLORS,
    CATEGORY_DESCRIPTIONS,
    IMPULSE_SCORE_MAX,
    IMPULSE_SCORE_MIN,
    AnalysisResult,
    AudioArtifact,
    Category,
    Transaction,
    TransactionType,
    dump_transactions,
    load_transactions,
    new_transaction_id,
)
from voicemoney.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "CATEGORY_COLORS",
    "CATEGORY_DESCRIPTIONS",
    "IMPULSE_SCORE_MAX",
    "IMPULSE_SCORE_MIN",
    "AnalysisResult",
    "AudioArtifact",
    "Category",
    "Transaction",
    "TransactionType",
    "dump_transactions",
    "load_transactions",
    "new_transaction_id",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
