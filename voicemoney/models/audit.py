"""
Audit Models for VoiceMoney

Every significant step of a voice entry is logged for audit purposes:
microphone access, the recording itself, the Gemini call, silent
corrections applied to its output, and every write to the ledger.

DESIGN DECISION: Audit events are append-only log records. They are never
stored alongside the transactions, so a data wipe does not erase the trail.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the voice entry pipeline has its own event type.
    """
    # Capture
    RECORDING_STARTED = "recording_started"
    RECORDING_STOPPED = "recording_stopped"
    RECORDING_DISCARDED = "recording_discarded"
    MICROPHONE_DENIED = "microphone_denied"

    # Analysis
    ANALYSIS_REQUESTED = "analysis_requested"
    ANALYSIS_COMPLETED = "analysis_completed"
    ANALYSIS_FAILED = "analysis_failed"
    CATEGORY_NORMALIZED = "category_normalized"
    VALUE_CLAMPED = "value_clamped"

    # Ledger
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    STORE_LOADED = "store_loaded"
    STORE_WIPED = "store_wiped"
    SAVE_FAILED = "save_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'recording')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - one voice entry from microphone to ledger
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.recording_started(target_date, correlation_id)
        event = AuditEventBuilder.transaction_created(tx, correlation_id)
    """

    @staticmethod
    def recording_started(
        target_date: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORDING_STARTED,
            entity_type="recording",
            correlation_id=correlation_id,
            description=f"Recording started for {target_date.date().isoformat()}",
            details={"target_date": target_date.isoformat()},
            is_user_action=True,
        )

    @staticmethod
    def recording_stopped(
        artifact_id: str,
        size_bytes: int,
        mime_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORDING_STOPPED,
            entity_type="recording",
            entity_id=artifact_id,
            correlation_id=correlation_id,
            description=f"Recording stopped ({size_bytes} bytes)",
            details={
                "size_bytes": size_bytes,
                "mime_type": mime_type,
            },
            is_user_action=True,
        )

    @staticmethod
    def recording_discarded(
        artifact_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORDING_DISCARDED,
            entity_type="recording",
            entity_id=artifact_id,
            correlation_id=correlation_id,
            description="User discarded the recording",
            is_user_action=True,
        )

    @staticmethod
    def microphone_denied(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MICROPHONE_DENIED,
            severity=AuditSeverity.WARNING,
            entity_type="recording",
            correlation_id=correlation_id,
            description="Microphone access was refused or unavailable",
            error_message=error_message,
        )

    @staticmethod
    def analysis_requested(
        artifact_id: str,
        model_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_REQUESTED,
            entity_type="recording",
            entity_id=artifact_id,
            correlation_id=correlation_id,
            description=f"Voice memo sent to {model_name}",
            details={"model_name": model_name},
            is_user_action=True,
        )

    @staticmethod
    def analysis_completed(
        artifact_id: str,
        category: str,
        amount: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_COMPLETED,
            entity_type="recording",
            entity_id=artifact_id,
            correlation_id=correlation_id,
            description=f"Voice memo analysed: {category} {amount:,}원",
            details={
                "category": category,
                "amount": amount,
            },
        )

    @staticmethod
    def analysis_failed(
        artifact_id: str,
        error_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="recording",
            entity_id=artifact_id,
            correlation_id=correlation_id,
            description=f"Voice memo analysis failed: {error_type}",
            error_code=error_type,
            error_message=error_message,
        )

    @staticmethod
    def value_corrected(
        artifact_id: str,
        field: str,
        original: Any,
        corrected: Any,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.CATEGORY_NORMALIZED
            if field == "category"
            else AuditEventType.VALUE_CLAMPED
        )
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING,
            entity_type="recording",
            entity_id=artifact_id,
            correlation_id=correlation_id,
            description=f"Model output corrected: {field} {original!r} -> {corrected!r}",
            details={
                "field": field,
                "original": repr(original),
                "corrected": repr(corrected),
            },
        )

    @staticmethod
    def transaction_created(
        transaction_id: str,
        category: str,
        amount: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction saved: {category} - {amount:,}원",
            details={
                "category": category,
                "amount": amount,
            },
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction edited ({', '.join(changed_fields) or 'no changes'})",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def store_loaded(transaction_count: int, backend: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_LOADED,
            entity_type="store",
            description=f"Loaded {transaction_count} transactions from {backend}",
            details={
                "transaction_count": transaction_count,
                "backend": backend,
            },
        )

    @staticmethod
    def store_wiped(transaction_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_WIPED,
            severity=AuditSeverity.WARNING,
            entity_type="store",
            description=f"All data deleted ({transaction_count} transactions)",
            details={"transaction_count": transaction_count},
            is_user_action=True,
        )

    @staticmethod
    def save_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="store",
            correlation_id=correlation_id,
            description="Writing the ledger to storage failed",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
