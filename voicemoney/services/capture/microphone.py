"""
Microphone port.

The capture session never touches audio hardware directly. It asks a
Microphone for an open stream and hands that stream back when recording
stops. Two guarantees the session relies on:

1. acquire() either returns a live stream or raises PermissionDenied
2. release() is idempotent and never raises
"""

from abc import ABC, abstractmethod
from typing import Optional, Protocol


class CaptureError(Exception):
    """Base exception for capture errors."""
    pass


class PermissionDenied(CaptureError):
    """Microphone access was refused or no input device is available."""
    pass


class RecordingStateError(CaptureError):
    """An operation was called in a state that does not allow it."""

    def __init__(self, operation: str, state: str):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} while {state}")


class ArtifactFinalizationError(CaptureError):
    """The recorded chunks could not be turned into an audio artifact."""
    pass


class MicrophoneStream(ABC):
    """An acquired microphone. Produces encoded chunks until released."""

    @property
    @abstractmethod
    def mime_type(self) -> str:
        """Media type of the chunks this stream produces."""
        pass

    @abstractmethod
    async def read_chunks(self) -> list[bytes]:
        """Stop capturing and return every chunk recorded so far."""
        pass

    @abstractmethod
    def release(self) -> None:
        """Give the device back. Safe to call more than once."""
        pass


class Microphone(ABC):
    """Source of microphone streams."""

    @abstractmethod
    async def acquire(self) -> MicrophoneStream:
        """
        Open the microphone.

        Raises:
            PermissionDenied: If access is refused or no device exists
        """
        pass


class UploadedClip(Protocol):
    """What Streamlit's st.audio_input hands back."""

    type: Optional[str]

    def getvalue(self) -> bytes: ...


class _ClipStream(MicrophoneStream):
    def __init__(self, content: bytes, mime_type: str):
        self._content = content
        self._mime_type = mime_type
        self.released = False

    @property
    def mime_type(self) -> str:
        return self._mime_type

    async def read_chunks(self) -> list[bytes]:
        if self.released:
            return []
        return [self._content]

    def release(self) -> None:
        self.released = True


class RecordedClipMicrophone(Microphone):
    """
    Adapts a clip already captured by the browser to the Microphone port.

    In the Streamlit app the browser owns the device: st.audio_input asks
    for permission, records, and uploads the result. An empty or missing
    clip means the user never granted access (or recorded nothing), which
    is reported the same way a refused device would be.
    """

    def __init__(
        self,
        content: Optional[bytes],
        mime_type: Optional[str] = None,
        default_mime_type: str = "audio/webm",
    ):
        self._content = content
        self._mime_type = mime_type or default_mime_type
        self.last_stream: Optional[_ClipStream] = None

    @classmethod
    def from_upload(
        cls,
        clip: Optional[UploadedClip],
        default_mime_type: str = "audio/webm",
    ) -> "RecordedClipMicrophone":
        if clip is None:
            return cls(None, default_mime_type=default_mime_type)
        return cls(
            clip.getvalue(),
            mime_type=getattr(clip, "type", None),
            default_mime_type=default_mime_type,
        )

    async def acquire(self) -> MicrophoneStream:
        if not self._content:
            raise PermissionDenied("No audio input is available from the browser")
        self.last_stream = _ClipStream(self._content, self._mime_type)
        return self.last_stream
