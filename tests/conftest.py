"""
Shared fixtures.

No test talks to a real microphone, Gemini or Google Sheets; each of those
is replaced by a small fake defined here.
"""

import asyncio
import json
from datetime import datetime
from typing import Optional

import pytest

from voicemoney.audit import AuditLogger
from voicemoney.config import GeminiSettings
from voicemoney.models.transaction import (
    AudioArtifact,
    Category,
    Transaction,
    TransactionType,
)
from voicemoney.services.analysis import GeminiAnalysisService
from voicemoney.services.capture import (
    Microphone,
    MicrophoneStream,
    PermissionDenied,
)
from voicemoney.services.storage import InMemoryTransactionStorage, StorageError


COFFEE_RESPONSE = {
    "type": "지출",
    "amount": 4500,
    "category": "식비",
    "reason": "출근길에 커피",
    "impulseScore": 3,
    "transcript": "스타벅스에서 커피 샀어요",
}


class FakeStream(MicrophoneStream):
    def __init__(self, chunks, mime_type, read_error=None):
        self._chunks = chunks
        self._mime_type = mime_type
        self._read_error = read_error
        self.release_count = 0

    @property
    def mime_type(self) -> str:
        return self._mime_type

    async def read_chunks(self) -> list[bytes]:
        if self._read_error:
            raise self._read_error
        return list(self._chunks)

    def release(self) -> None:
        self.release_count += 1


class FakeMicrophone(Microphone):
    """Hands out FakeStreams and remembers them so tests can check release."""

    def __init__(
        self,
        chunks=(b"voice-", b"memo"),
        mime_type="audio/webm;codecs=opus",
        deny=False,
        acquire_error: Optional[Exception] = None,
        read_error: Optional[Exception] = None,
    ):
        self._chunks = list(chunks)
        self._mime_type = mime_type
        self._deny = deny
        self._acquire_error = acquire_error
        self._read_error = read_error
        self.streams: list[FakeStream] = []

    async def acquire(self) -> MicrophoneStream:
        if self._deny:
            raise PermissionDenied("User refused microphone access")
        if self._acquire_error:
            raise self._acquire_error
        stream = FakeStream(self._chunks, self._mime_type, self._read_error)
        self.streams.append(stream)
        return stream


class FakeResponse:
    def __init__(self, text: Optional[str] = None, blocked: bool = False):
        self._text = text
        self._blocked = blocked

    @property
    def text(self) -> str:
        if self._blocked:
            raise ValueError("The response was blocked")
        return self._text


class FakeGeminiModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(
        self,
        payload=None,
        text: Optional[str] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        blocked: bool = False,
    ):
        if text is None and payload is not None:
            text = json.dumps(payload, ensure_ascii=False)
        self.text = text
        self.error = error
        self.delay = delay
        self.blocked = blocked
        self.calls = []

    async def generate_content_async(self, contents):
        self.calls.append(contents)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return FakeResponse(self.text, blocked=self.blocked)


class FailingStorage(InMemoryTransactionStorage):
    """In-memory storage whose writes can be switched off."""

    def __init__(self, blob=None):
        super().__init__(blob)
        self.fail_writes = False

    async def write_all(self, transactions):
        if self.fail_writes:
            raise StorageError("disk full")
        await super().write_all(transactions)


class BrokenSink:
    """structlog stand-in whose every call fails."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise OSError("log pipe closed")
        return fail


def run(coro):
    return asyncio.run(coro)


def make_transaction(**overrides) -> Transaction:
    data = {
        "type": TransactionType.EXPENSE,
        "amount": 4500,
        "merchant": "스타벅스",
        "method": "카드",
        "category": Category.FOOD,
        "subcategory": "커피",
        "reason": "출근길에 커피",
        "emotion": "Neutral",
        "diary": "출근길에 커피 한 잔.",
        "impulse_score": 3,
        "transcript": "스타벅스에서 커피 샀어요",
        "date": datetime(2024, 5, 14, 8, 30),
    }
    data.update(overrides)
    return Transaction(**data)


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def gemini_settings():
    return GeminiSettings(api_key="test-key", timeout_seconds=5)


@pytest.fixture
def artifact():
    return AudioArtifact(content=b"voice-memo", mime_type="audio/webm")


@pytest.fixture
def microphone():
    return FakeMicrophone()


@pytest.fixture
def storage():
    return FailingStorage()


@pytest.fixture
def coffee_model():
    return FakeGeminiModel(payload=COFFEE_RESPONSE)


@pytest.fixture
def analysis_service(gemini_settings, coffee_model, audit_logger):
    return GeminiAnalysisService(
        settings=gemini_settings,
        model=coffee_model,
        audit_logger=audit_logger,
    )
