"""
Capture Session

Owns one recording from microphone to finished artifact:

    IDLE --start--> RECORDING --stop--> STOPPED --submit--> SUBMITTING --ok--> IDLE
                                          |  ^                  |
                                          |  +-----failure------+
                                          +--reset--> IDLE

CRITICAL:
- The microphone is held only while RECORDING and is released on every
  path out of it, including failures while building the artifact.
- A failed submit leaves the artifact in place so the user can resubmit
  without recording again.
- The target date is chosen by the user (calendar click) and travels with
  the artifact; it is never taken from the clock at submit time.
"""

from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

import structlog
from pydantic import ValidationError

from voicemoney.audit import AuditLogger, create_correlation_id
from voicemoney.models.transaction import AudioArtifact
from voicemoney.services.capture.microphone import (
    ArtifactFinalizationError,
    Microphone,
    MicrophoneStream,
    PermissionDenied,
    RecordingStateError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CaptureState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"
    SUBMITTING = "submitting"


class CaptureSession:
    """One reusable recording slot bound to a target date."""

    def __init__(
        self,
        microphone: Microphone,
        target_date: Optional[datetime] = None,
        audit_logger: Optional[AuditLogger] = None,
        max_bytes: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._microphone = microphone
        self._target_date = target_date
        self._audit_logger = audit_logger
        self._max_bytes = max_bytes
        self._clock = clock

        self._state = CaptureState.IDLE
        self._stream: Optional[MicrophoneStream] = None
        self._artifact: Optional[AudioArtifact] = None
        self._correlation_id: Optional[UUID] = None

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def artifact(self) -> Optional[AudioArtifact]:
        return self._artifact

    @property
    def target_date(self) -> Optional[datetime]:
        return self._target_date

    @property
    def correlation_id(self) -> Optional[UUID]:
        return self._correlation_id

    @property
    def is_recording(self) -> bool:
        return self._state == CaptureState.RECORDING

    def set_target_date(self, target_date: datetime) -> None:
        """Change the date the next record will carry."""
        if self._state not in (CaptureState.IDLE, CaptureState.STOPPED):
            raise RecordingStateError("change the target date", self._state.value)
        self._target_date = target_date

    async def start(self, target_date: Optional[datetime] = None) -> None:
        """
        Acquire the microphone and begin recording.

        Raises:
            PermissionDenied: Access refused or no device; state stays IDLE
            RecordingStateError: Not IDLE
        """
        if self._state != CaptureState.IDLE:
            raise RecordingStateError("start recording", self._state.value)

        if target_date is not None:
            self._target_date = target_date
        elif self._target_date is None:
            self._target_date = self._clock()

        correlation_id = create_correlation_id()
        try:
            stream = await self._microphone.acquire()
        except PermissionDenied as e:
            if self._audit_logger:
                self._audit_logger.log_microphone_denied(str(e), correlation_id)
            raise
        except OSError as e:
            if self._audit_logger:
                self._audit_logger.log_microphone_denied(str(e), correlation_id)
            raise PermissionDenied(f"Microphone unavailable: {e}") from e

        self._stream = stream
        self._correlation_id = correlation_id
        self._state = CaptureState.RECORDING

        if self._audit_logger:
            self._audit_logger.log_recording_started(self._target_date, correlation_id)

    async def stop(self) -> AudioArtifact:
        """
        Finish recording and build the artifact.

        The microphone is released before this returns or raises.

        Raises:
            ArtifactFinalizationError: Nothing usable was recorded; state
                goes back to IDLE
            RecordingStateError: Not RECORDING
        """
        if self._state != CaptureState.RECORDING or self._stream is None:
            raise RecordingStateError("stop recording", self._state.value)

        stream, self._stream = self._stream, None
        try:
            chunks = await stream.read_chunks()
            artifact = self._finalize(chunks, stream.mime_type)
        except ArtifactFinalizationError:
            self._state = CaptureState.IDLE
            raise
        except Exception as e:
            self._state = CaptureState.IDLE
            raise ArtifactFinalizationError(f"Could not finish the recording: {e}") from e
        finally:
            stream.release()

        self._artifact = artifact
        self._state = CaptureState.STOPPED

        if self._audit_logger:
            self._audit_logger.log_recording_stopped(
                artifact_id=artifact.artifact_id,
                size_bytes=artifact.size_bytes,
                mime_type=artifact.mime_type,
                correlation_id=self._correlation_id,
            )
        return artifact

    def _finalize(self, chunks: list[bytes], mime_type: str) -> AudioArtifact:
        content = b"".join(chunk for chunk in chunks if chunk)
        if not content:
            raise ArtifactFinalizationError("Nothing was recorded")
        if self._max_bytes is not None and len(content) > self._max_bytes:
            raise ArtifactFinalizationError(
                f"Recording is too long ({len(content):,} bytes, limit {self._max_bytes:,})"
            )
        try:
            return AudioArtifact(
                content=content,
                mime_type=mime_type,
                recorded_at=self._clock(),
            )
        except ValidationError as e:
            raise ArtifactFinalizationError(f"Invalid recording: {e}") from e

    def reset(self) -> None:
        """Discard the finished recording without submitting it."""
        if self._state != CaptureState.STOPPED:
            raise RecordingStateError("discard the recording", self._state.value)

        artifact_id = self._artifact.artifact_id if self._artifact else None
        self._artifact = None
        self._state = CaptureState.IDLE

        if self._audit_logger:
            self._audit_logger.log_recording_discarded(artifact_id, self._correlation_id)
        self._correlation_id = None

    async def submit(
        self,
        handler: Callable[[AudioArtifact, datetime], Awaitable[T]],
    ) -> T:
        """
        Hand the artifact and target date to handler.

        On success the session is IDLE again and ready for the next
        recording. If handler raises (or is cancelled) the session goes
        back to STOPPED with the same artifact and the error propagates.
        """
        if self._state != CaptureState.STOPPED or self._artifact is None:
            raise RecordingStateError("submit", self._state.value)

        self._state = CaptureState.SUBMITTING
        succeeded = False
        try:
            result = await handler(self._artifact, self._target_date)
            succeeded = True
        finally:
            if succeeded:
                self._artifact = None
                self._correlation_id = None
                self._state = CaptureState.IDLE
            else:
                self._state = CaptureState.STOPPED
                logger.info("capture_submit_failed", artifact_kept=True)
        return result
