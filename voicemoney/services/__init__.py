"""Services package."""

from voicemoney.services.analysis import (
    AnalysisError,
    AnalysisTimeoutError,
    ConfigurationError,
    GeminiAnalysisService,
    MalformedResponseError,
)
from voicemoney.services.capture import (
    ArtifactFinalizationError,
    CaptureError,
    CaptureSession,
    CaptureState,
    Microphone,
    PermissionDenied,
    RecordedClipMicrophone,
    RecordingStateError,
)
from voicemoney.services.storage import (
    ConnectionError,
    CorruptStoreError,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryTransactionStorage,
    JsonFileStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    # Analysis
    "AnalysisError",
    "AnalysisTimeoutError",
    "ConfigurationError",
    "GeminiAnalysisService",
    "MalformedResponseError",
    # Capture
    "ArtifactFinalizationError",
    "CaptureError",
    "CaptureSession",
    "CaptureState",
    "Microphone",
    "PermissionDenied",
    "RecordedClipMicrophone",
    "RecordingStateError",
    # Storage
    "ConnectionError",
    "CorruptStoreError",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    "InMemoryTransactionStorage",
    "JsonFileStorage",
    "NotFoundError",
    "StorageError",
    "TransactionStorageInterface",
]
