"""Tests for the recording state machine and the browser clip microphone."""

import asyncio
from datetime import datetime

import pytest

from voicemoney.models.audit import AuditEventType
from voicemoney.services.capture import (
    ArtifactFinalizationError,
    CaptureSession,
    CaptureState,
    PermissionDenied,
    RecordedClipMicrophone,
    RecordingStateError,
)

from tests.conftest import FakeMicrophone, run


TARGET = datetime(2024, 5, 14, 12, 0)


async def _recorded(session):
    await session.start()
    return await session.stop()


class TestStartAndStop:

    def test_start_then_stop_produces_artifact(self, microphone):
        session = CaptureSession(microphone, target_date=TARGET)

        artifact = run(_recorded(session))

        assert session.state == CaptureState.STOPPED
        assert session.artifact is artifact
        assert artifact.content == b"voice-memo"
        assert artifact.mime_type == "audio/webm"
        assert microphone.streams[0].release_count == 1

    def test_start_holds_microphone_until_stop(self, microphone):
        session = CaptureSession(microphone, target_date=TARGET)

        run(session.start())

        assert session.is_recording
        assert microphone.streams[0].release_count == 0

    def test_target_date_defaults_to_clock(self, microphone):
        now = datetime(2024, 6, 1, 9, 15)
        session = CaptureSession(microphone, clock=lambda: now)

        run(session.start())

        assert session.target_date == now

    def test_start_accepts_target_date(self, microphone):
        session = CaptureSession(microphone, target_date=TARGET)

        run(session.start(target_date=datetime(2024, 1, 1, 12, 0)))

        assert session.target_date == datetime(2024, 1, 1, 12, 0)

    def test_permission_denied_keeps_idle(self, audit_logger):
        session = CaptureSession(FakeMicrophone(deny=True), audit_logger=audit_logger)

        with pytest.raises(PermissionDenied):
            run(session.start())

        assert session.state == CaptureState.IDLE
        assert audit_logger.recent_events()[0].event_type == AuditEventType.MICROPHONE_DENIED

    def test_device_error_reported_as_permission_denied(self):
        session = CaptureSession(FakeMicrophone(acquire_error=OSError("no input device")))

        with pytest.raises(PermissionDenied, match="no input device"):
            run(session.start())

        assert session.state == CaptureState.IDLE

    def test_cannot_start_twice(self, microphone):
        session = CaptureSession(microphone)
        run(session.start())

        with pytest.raises(RecordingStateError):
            run(session.start())

    def test_cannot_stop_when_idle(self, microphone):
        with pytest.raises(RecordingStateError):
            run(CaptureSession(microphone).stop())


class TestMicrophoneRelease:
    """The microphone is released on every path out of RECORDING."""

    def test_released_when_nothing_recorded(self):
        microphone = FakeMicrophone(chunks=[b"", b""])
        session = CaptureSession(microphone)

        with pytest.raises(ArtifactFinalizationError):
            run(_recorded(session))

        assert microphone.streams[0].release_count == 1
        assert session.state == CaptureState.IDLE
        assert session.artifact is None

    def test_released_when_reading_fails(self):
        microphone = FakeMicrophone(read_error=RuntimeError("encoder crashed"))
        session = CaptureSession(microphone)

        with pytest.raises(ArtifactFinalizationError, match="encoder crashed"):
            run(_recorded(session))

        assert microphone.streams[0].release_count == 1
        assert session.state == CaptureState.IDLE

    def test_released_when_recording_too_large(self):
        microphone = FakeMicrophone(chunks=[b"x" * 11])
        session = CaptureSession(microphone, max_bytes=10)

        with pytest.raises(ArtifactFinalizationError, match="too long"):
            run(_recorded(session))

        assert microphone.streams[0].release_count == 1

    def test_released_when_media_type_invalid(self):
        microphone = FakeMicrophone(mime_type="text/plain")
        session = CaptureSession(microphone)

        with pytest.raises(ArtifactFinalizationError):
            run(_recorded(session))

        assert microphone.streams[0].release_count == 1

    def test_session_is_reusable_after_failed_stop(self):
        microphone = FakeMicrophone(chunks=[b""])
        session = CaptureSession(microphone)
        with pytest.raises(ArtifactFinalizationError):
            run(_recorded(session))

        run(session.start())

        assert session.is_recording


class TestSubmit:

    def test_success_returns_to_idle(self, microphone):
        session = CaptureSession(microphone, target_date=TARGET)
        artifact = run(_recorded(session))
        received = {}

        async def handler(a, target_date):
            received["artifact"] = a
            received["date"] = target_date
            return "saved"

        assert run(session.submit(handler)) == "saved"
        assert received == {"artifact": artifact, "date": TARGET}
        assert session.state == CaptureState.IDLE
        assert session.artifact is None

    def test_failure_keeps_artifact_for_resubmission(self, microphone):
        session = CaptureSession(microphone, target_date=TARGET)
        artifact = run(_recorded(session))

        async def failing(a, target_date):
            raise ConnectionError("network down")

        with pytest.raises(ConnectionError):
            run(session.submit(failing))

        assert session.state == CaptureState.STOPPED
        assert session.artifact is artifact

        async def succeeding(a, target_date):
            return a

        assert run(session.submit(succeeding)) is artifact

    def test_cancellation_keeps_artifact(self, microphone):
        session = CaptureSession(microphone, target_date=TARGET)
        artifact = run(_recorded(session))

        async def cancelled(a, target_date):
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            run(session.submit(cancelled))

        assert session.state == CaptureState.STOPPED
        assert session.artifact is artifact

    def test_state_is_submitting_during_handler(self, microphone):
        session = CaptureSession(microphone)
        run(_recorded(session))
        seen = []

        async def handler(a, target_date):
            seen.append(session.state)

        run(session.submit(handler))

        assert seen == [CaptureState.SUBMITTING]

    def test_submit_requires_stopped(self, microphone):
        session = CaptureSession(microphone)

        async def handler(a, target_date):
            return None

        with pytest.raises(RecordingStateError):
            run(session.submit(handler))


class TestReset:

    def test_reset_discards_artifact(self, microphone, audit_logger):
        session = CaptureSession(microphone, audit_logger=audit_logger)
        run(_recorded(session))

        session.reset()

        assert session.state == CaptureState.IDLE
        assert session.artifact is None
        assert audit_logger.recent_events()[0].event_type == AuditEventType.RECORDING_DISCARDED

    def test_reset_requires_stopped(self, microphone):
        with pytest.raises(RecordingStateError):
            CaptureSession(microphone).reset()

    def test_target_date_locked_while_recording(self, microphone):
        session = CaptureSession(microphone)
        run(session.start())

        with pytest.raises(RecordingStateError):
            session.set_target_date(TARGET)


class FakeClip:
    def __init__(self, content, type=None):
        self._content = content
        self.type = type

    def getvalue(self):
        return self._content


class TestRecordedClipMicrophone:

    def test_clip_becomes_artifact(self):
        microphone = RecordedClipMicrophone.from_upload(FakeClip(b"wav-bytes", "audio/wav"))
        session = CaptureSession(microphone)

        artifact = run(_recorded(session))

        assert artifact.content == b"wav-bytes"
        assert artifact.mime_type == "audio/wav"
        assert microphone.last_stream.released is True

    def test_missing_type_uses_default(self):
        microphone = RecordedClipMicrophone.from_upload(FakeClip(b"bytes"), "audio/ogg")

        artifact = run(_recorded(CaptureSession(microphone)))

        assert artifact.mime_type == "audio/ogg"

    @pytest.mark.parametrize("clip", [None, FakeClip(b"")])
    def test_no_clip_is_permission_denied(self, clip):
        session = CaptureSession(RecordedClipMicrophone.from_upload(clip))

        with pytest.raises(PermissionDenied):
            run(session.start())

        assert session.state == CaptureState.IDLE
