"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability from microphone to ledger
2. Debugging capability when Gemini returns something odd
3. A short in-app history on the settings page

The audit logger:
- Never raises; a logging failure must not lose a transaction
- Supports correlation IDs to trace one voice entry end to end
- Keeps the most recent events in memory for display
"""

import logging
from collections import deque
from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from voicemoney.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(ensure_ascii=False)
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog's JSON lines to stderr at the given level."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Writes each event as one structured log line and remembers the last
    few hundred in memory.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("voicemoney.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        self._history.append(event)

        try:
            log_dict = event.to_log_dict()
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            logging.getLogger(__name__).error(
                "audit_log_failed event_id=%s error=%s", event.event_id, e
            )

    def recent_events(self, limit: int = 50) -> list[AuditEvent]:
        """Most recent events, newest first."""
        events = list(self._history)[-limit:]
        events.reverse()
        return events

    def log_recording_started(
        self,
        target_date: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.recording_started(target_date, correlation_id))

    def log_recording_stopped(
        self,
        artifact_id: str,
        size_bytes: int,
        mime_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.recording_stopped(
            artifact_id=artifact_id,
            size_bytes=size_bytes,
            mime_type=mime_type,
            correlation_id=correlation_id,
        ))

    def log_recording_discarded(
        self,
        artifact_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.recording_discarded(artifact_id, correlation_id))

    def log_microphone_denied(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.microphone_denied(error_message, correlation_id))

    def log_analysis_requested(
        self,
        artifact_id: str,
        model_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.analysis_requested(
            artifact_id=artifact_id,
            model_name=model_name,
            correlation_id=correlation_id,
        ))

    def log_analysis_completed(
        self,
        artifact_id: str,
        category: str,
        amount: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.analysis_completed(
            artifact_id=artifact_id,
            category=category,
            amount=amount,
            correlation_id=correlation_id,
        ))

    def log_analysis_failed(
        self,
        artifact_id: str,
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.analysis_failed(
            artifact_id=artifact_id,
            error_type=type(error).__name__,
            error_message=str(error),
            correlation_id=correlation_id,
        ))

    def log_value_corrected(
        self,
        artifact_id: str,
        field: str,
        original: Any,
        corrected: Any,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.value_corrected(
            artifact_id=artifact_id,
            field=field,
            original=original,
            corrected=corrected,
            correlation_id=correlation_id,
        ))

    def log_transaction_created(
        self,
        transaction_id: str,
        category: str,
        amount: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            category=category,
            amount=amount,
            correlation_id=correlation_id,
        ))

    def log_transaction_updated(
        self,
        transaction_id: str,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        ))

    def log_store_loaded(self, transaction_count: int, backend: str) -> None:
        self.log(AuditEventBuilder.store_loaded(transaction_count, backend))

    def log_store_wiped(self, transaction_count: int) -> None:
        self.log(AuditEventBuilder.store_wiped(transaction_count))

    def log_save_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.save_failed(error_message, correlation_id))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this when a recording starts and pass it through submit and save.
    """
    return uuid4()
