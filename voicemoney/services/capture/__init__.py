"""Voice capture package."""

from voicemoney.services.capture.microphone import (
    ArtifactFinalizationError,
    CaptureError,
    Microphone,
    MicrophoneStream,
    PermissionDenied,
    RecordedClipMicrophone,
    RecordingStateError,
)
from voicemoney.services.capture.session import CaptureSession, CaptureState

__all__ = [
    "ArtifactFinalizationError",
    "CaptureError",
    "CaptureSession",
    "CaptureState",
    "Microphone",
    "MicrophoneStream",
    "PermissionDenied",
    "RecordedClipMicrophone",
    "RecordingStateError",
]
