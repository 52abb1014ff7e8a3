"""
Main Orchestrator for VoiceMoney

This module ties together all the components and defines the
end-to-end flows for:
1. Voice entry (record -> stop -> analyse -> append -> persist)
2. Ledger maintenance (edit a record, wipe everything, aggregates)

DESIGN DECISION: The orchestrator enforces the boundaries:
- A transaction is created only from a complete analysis result
- A failed analysis leaves the recording available for resubmission
- Every step is audited under one correlation id per voice entry
"""

from datetime import date, datetime
from typing import Any, Optional

import structlog

from voicemoney.audit import AuditLogger
from voicemoney.config import StorageBackend, get_settings
from voicemoney.insights import CalendarDay, DashboardSummary, month_grid, summarize
from voicemoney.models.transaction import (
    AudioArtifact,
    Transaction,
    artifact_id_from_reference,
)
from voicemoney.services.analysis import (
    AnalysisError,
    ConfigurationError,
    GeminiAnalysisService,
)
from voicemoney.services.capture import CaptureSession, Microphone
from voicemoney.services.storage import (
    GoogleSheetsTransactionStorage,
    InMemoryTransactionStorage,
    JsonFileStorage,
    StorageError,
    TransactionStorageInterface,
)
from voicemoney.store import TransactionStore

logger = structlog.get_logger(__name__)


class SessionAudio:
    """
    Recordings behind the transactions saved in this process.

    Audio is never persisted, so a record's audioUrl only resolves while
    the app that recorded it is still running.
    """

    def __init__(self):
        self._artifacts: dict[str, AudioArtifact] = {}

    def __len__(self) -> int:
        return len(self._artifacts)

    def keep(self, artifact: AudioArtifact) -> None:
        self._artifacts[artifact.artifact_id] = artifact

    def lookup(self, transaction: Transaction) -> Optional[AudioArtifact]:
        artifact_id = artifact_id_from_reference(transaction.audio_url)
        if artifact_id is None:
            return None
        return self._artifacts.get(artifact_id)

    def clear(self) -> None:
        self._artifacts.clear()


class VoiceEntryFlow:
    """
    Orchestrates one voice entry.

    Flow:
    1. Session → bound to the date the user clicked
    2. Record → microphone acquired, released on stop
    3. Submit → Gemini extracts the fields
    4. Save → new transaction at the head of the ledger, written through

    If step 3 or 4 fails the session keeps its recording so the user can
    press submit again.
    """

    def __init__(
        self,
        store: TransactionStore,
        analysis_service: Optional[GeminiAnalysisService] = None,
        audit_logger: Optional[AuditLogger] = None,
        max_recording_bytes: Optional[int] = None,
        session_audio: Optional[SessionAudio] = None,
    ):
        self._store = store
        self._session_audio = session_audio if session_audio is not None else SessionAudio()
        self._analysis_service = analysis_service or GeminiAnalysisService(audit_logger=audit_logger)
        self._audit_logger = audit_logger
        self._max_recording_bytes = max_recording_bytes

    @property
    def store(self) -> TransactionStore:
        return self._store

    @property
    def session_audio(self) -> SessionAudio:
        return self._session_audio

    def audio_for(self, transaction: Transaction) -> Optional[AudioArtifact]:
        """The recording behind transaction, if it was made in this session."""
        return self._session_audio.lookup(transaction)

    def new_session(
        self,
        microphone: Microphone,
        target_date: Optional[datetime] = None,
    ) -> CaptureSession:
        """Create a capture session bound to target_date (now if omitted)."""
        return CaptureSession(
            microphone=microphone,
            target_date=target_date,
            audit_logger=self._audit_logger,
            max_bytes=self._max_recording_bytes,
        )

    async def record(self, session: CaptureSession) -> AudioArtifact:
        """
        Start and stop in one go, for sources that deliver a finished clip.

        Raises:
            PermissionDenied: No microphone / no clip
            ArtifactFinalizationError: Clip is empty or too large
        """
        await session.start()
        return await session.stop()

    async def submit(self, session: CaptureSession) -> Transaction:
        """
        Analyse the session's recording and save the resulting transaction.

        Returns:
            The new transaction (already persisted)

        Raises:
            ConfigurationError: No Gemini API key
            AnalysisError: Gemini failed; the recording is kept
            StorageError: Saving failed; the recording is kept
        """
        correlation_id = session.correlation_id

        async def analyse_and_save(artifact: AudioArtifact, target_date: datetime) -> Transaction:
            if self._audit_logger:
                self._audit_logger.log_analysis_requested(
                    artifact_id=artifact.artifact_id,
                    model_name=self._analysis_service.model_name,
                    correlation_id=correlation_id,
                )
            try:
                result = await self._analysis_service.analyze(artifact, correlation_id)
            except (ConfigurationError, AnalysisError) as e:
                if self._audit_logger:
                    self._audit_logger.log_analysis_failed(artifact.artifact_id, e, correlation_id)
                raise

            if self._audit_logger:
                self._audit_logger.log_analysis_completed(
                    artifact_id=artifact.artifact_id,
                    category=result.category.value,
                    amount=result.amount,
                    correlation_id=correlation_id,
                )

            transaction = Transaction.from_analysis(
                result,
                date=target_date,
                audio_url=artifact.reference,
            )
            saved = await self._store.append(transaction, correlation_id)
            self._session_audio.keep(artifact)
            return saved

        return await session.submit(analyse_and_save)


class LedgerFlow:
    """
    Orchestrates everything done to the ledger after capture:
    list, edit, aggregate, wipe.
    """

    def __init__(
        self,
        store: TransactionStore,
        session_audio: Optional[SessionAudio] = None,
    ):
        self._store = store
        self._session_audio = session_audio if session_audio is not None else SessionAudio()

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return self._store.transactions

    async def edit_transaction(self, transaction_id: str, **changes: Any) -> Transaction:
        """
        Save a user edit. Marks the record as modified.

        Raises:
            NotFoundError: Unknown id
            ValueError: Invalid field or value
        """
        return await self._store.edit(transaction_id, **changes)

    def audio_for(self, transaction: Transaction) -> Optional[AudioArtifact]:
        """The recording behind transaction, if it was made in this session."""
        return self._session_audio.lookup(transaction)

    async def wipe_all_data(self) -> int:
        """Delete the whole ledger and the recordings held for it. Irreversible."""
        removed = await self._store.wipe()
        self._session_audio.clear()
        return removed

    def dashboard(self) -> DashboardSummary:
        return summarize(self._store.transactions)

    def month(
        self,
        year: int,
        month: int,
        today: Optional[date] = None,
    ) -> list[list[Optional[CalendarDay]]]:
        return month_grid(self._store.transactions, year, month, today=today)


def create_storage(backend: Optional[StorageBackend] = None) -> TransactionStorageInterface:
    """Build the storage backend selected in settings."""
    settings = get_settings()
    backend = backend or settings.storage.backend

    if backend == StorageBackend.GOOGLE_SHEETS:
        return GoogleSheetsTransactionStorage()
    if backend == StorageBackend.MEMORY:
        return InMemoryTransactionStorage()
    return JsonFileStorage()


async def create_app_components(
    use_storage: bool = True,
    storage: Optional[TransactionStorageInterface] = None,
    analysis_service: Optional[GeminiAnalysisService] = None,
) -> tuple[VoiceEntryFlow, LedgerFlow, AuditLogger]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the configured durable backend.
                    Set to False to keep everything in memory.
        storage: Explicit backend (overrides settings)
        analysis_service: Explicit analysis client (overrides settings)

    Returns:
        (voice_entry_flow, ledger_flow, audit_logger)

    Raises:
        CorruptStoreError: The configured backend holds unreadable data
    """
    settings = get_settings()
    audit_logger = AuditLogger()

    if storage is None:
        if use_storage:
            try:
                storage = create_storage()
            except Exception as e:
                # Backend not configured (e.g. Sheets credentials) - continue without it
                logger.warning("storage_not_configured", error=str(e))
                storage = InMemoryTransactionStorage()
        else:
            storage = InMemoryTransactionStorage()

    try:
        store = await TransactionStore.open(storage, audit_logger)
    except StorageError as e:
        audit_logger.log_error("store_open_failed", str(e), {"backend": storage.backend_name})
        raise

    session_audio = SessionAudio()
    voice_flow = VoiceEntryFlow(
        store=store,
        analysis_service=analysis_service or GeminiAnalysisService(audit_logger=audit_logger),
        audit_logger=audit_logger,
        max_recording_bytes=settings.app.max_recording_bytes,
        session_audio=session_audio,
    )
    ledger_flow = LedgerFlow(store=store, session_audio=session_audio)

    return voice_flow, ledger_flow, audit_logger
