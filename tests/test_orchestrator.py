"""End-to-end flows with fake microphone, model and storage."""

from datetime import date, datetime

import pytest

from voicemoney import orchestrator
from voicemoney.config import GeminiSettings
from voicemoney.models.audit import AuditEventType
from voicemoney.models.transaction import Category
from voicemoney.orchestrator import create_app_components
from voicemoney.services.analysis import (
    AnalysisError,
    ConfigurationError,
    GeminiAnalysisService,
)
from voicemoney.services.capture import CaptureState, PermissionDenied
from voicemoney.services.storage import (
    CorruptStoreError,
    InMemoryTransactionStorage,
    StorageError,
)

from tests.conftest import FakeGeminiModel, FakeMicrophone, make_transaction, run


TARGET = datetime(2024, 5, 14, 12, 0)


@pytest.fixture
def components(storage, analysis_service):
    return run(create_app_components(storage=storage, analysis_service=analysis_service))


async def _record_and_submit(voice_flow, session):
    await voice_flow.record(session)
    return await voice_flow.submit(session)


class TestVoiceEntryFlow:

    def test_record_and_submit(self, components, microphone):
        voice_flow, ledger_flow, _ = components
        session = voice_flow.new_session(microphone, target_date=TARGET)

        transaction = run(_record_and_submit(voice_flow, session))

        assert transaction.is_modified is False
        assert transaction.amount == 4500
        assert transaction.category == Category.FOOD
        assert transaction.id
        assert transaction.date == TARGET
        assert transaction.audio_url.startswith("artifact:")
        assert ledger_flow.transactions[0] == transaction
        assert session.state == CaptureState.IDLE

    def test_each_submission_gets_new_id(self, components):
        voice_flow, ledger_flow, _ = components

        for _ in range(2):
            session = voice_flow.new_session(FakeMicrophone(), target_date=TARGET)
            run(_record_and_submit(voice_flow, session))

        ids = {t.id for t in ledger_flow.transactions}
        assert len(ids) == 2

    def test_new_record_is_placed_first_regardless_of_date(self, components, storage):
        voice_flow, ledger_flow, _ = components
        run(voice_flow.store.append(make_transaction(id="existing", date=datetime(2030, 1, 1))))

        session = voice_flow.new_session(FakeMicrophone(), target_date=TARGET)
        new = run(_record_and_submit(voice_flow, session))

        assert [t.id for t in ledger_flow.transactions] == [new.id, "existing"]
        assert [t.id for t in run(storage.read_all())] == [new.id, "existing"]

    def test_network_error_keeps_recording(self, storage, gemini_settings, microphone):
        model = FakeGeminiModel(
            payload={
                "type": "지출",
                "amount": 4500,
                "category": "식비",
                "reason": "출근길에 커피",
                "impulseScore": 3,
                "transcript": "스타벅스에서 커피 샀어요",
            },
            error=OSError("network unreachable"),
        )
        service = GeminiAnalysisService(settings=gemini_settings, model=model)
        voice_flow, ledger_flow, audit = run(
            create_app_components(storage=storage, analysis_service=service)
        )
        session = voice_flow.new_session(microphone, target_date=TARGET)
        artifact = run(voice_flow.record(session))

        with pytest.raises(AnalysisError):
            run(voice_flow.submit(session))

        assert ledger_flow.transactions == ()
        assert storage.write_count == 0
        assert session.state == CaptureState.STOPPED
        assert session.artifact is artifact
        assert any(e.event_type == AuditEventType.ANALYSIS_FAILED for e in audit.recent_events())

        # Same artifact, second try
        model.error = None
        transaction = run(voice_flow.submit(session))

        assert len(ledger_flow.transactions) == 1
        assert transaction.audio_url == artifact.reference
        assert len(model.calls) == 2

    def test_missing_api_key(self, storage, microphone):
        service = GeminiAnalysisService(
            settings=GeminiSettings(api_key=None),
            model=FakeGeminiModel(),
        )
        voice_flow, ledger_flow, _ = run(
            create_app_components(storage=storage, analysis_service=service)
        )
        session = voice_flow.new_session(microphone, target_date=TARGET)

        with pytest.raises(ConfigurationError):
            run(_record_and_submit(voice_flow, session))

        assert session.state == CaptureState.STOPPED
        assert ledger_flow.transactions == ()

    def test_save_failure_keeps_recording(self, components, storage, microphone):
        voice_flow, ledger_flow, _ = components
        session = voice_flow.new_session(microphone, target_date=TARGET)
        run(voice_flow.record(session))
        storage.fail_writes = True

        with pytest.raises(StorageError):
            run(voice_flow.submit(session))

        assert session.state == CaptureState.STOPPED
        assert ledger_flow.transactions == ()

    def test_microphone_denied(self, components):
        voice_flow, _, _ = components
        session = voice_flow.new_session(FakeMicrophone(deny=True))

        with pytest.raises(PermissionDenied):
            run(voice_flow.record(session))

        assert session.state == CaptureState.IDLE

    def test_one_correlation_id_per_entry(self, components, microphone):
        voice_flow, _, audit = components
        session = voice_flow.new_session(microphone, target_date=TARGET)

        run(_record_and_submit(voice_flow, session))

        traced = {
            e.event_type: e.correlation_id
            for e in audit.recent_events()
            if e.correlation_id is not None
        }
        assert {
            AuditEventType.RECORDING_STARTED,
            AuditEventType.RECORDING_STOPPED,
            AuditEventType.ANALYSIS_REQUESTED,
            AuditEventType.ANALYSIS_COMPLETED,
            AuditEventType.TRANSACTION_CREATED,
        } <= set(traced)
        assert len(set(traced.values())) == 1


class TestLedgerFlow:

    def test_edit_amount(self, components, microphone):
        voice_flow, ledger_flow, _ = components
        run(voice_flow.store.append(make_transaction(id="older")))
        session = voice_flow.new_session(microphone, target_date=TARGET)
        created = run(_record_and_submit(voice_flow, session))

        edited = run(ledger_flow.edit_transaction(created.id, amount=5000))

        assert edited.amount == 5000
        assert edited.is_modified is True
        assert edited.model_dump(exclude={"amount", "is_modified"}) == \
            created.model_dump(exclude={"amount", "is_modified"})
        assert [t.id for t in ledger_flow.transactions] == [created.id, "older"]

    def test_wipe_all_data(self, components, storage):
        voice_flow, ledger_flow, _ = components
        run(voice_flow.store.append(make_transaction()))

        assert run(ledger_flow.wipe_all_data()) == 1
        assert ledger_flow.transactions == ()
        assert run(storage.read_all()) == []

    def test_dashboard_and_month(self, components):
        voice_flow, ledger_flow, _ = components
        run(voice_flow.store.append(make_transaction(amount=4500, date=datetime(2024, 5, 14, 8, 0))))

        summary = ledger_flow.dashboard()
        weeks = ledger_flow.month(2024, 5, today=date(2024, 5, 20))

        assert summary.total_expense == 4500
        cells = [cell for week in weeks for cell in week if cell is not None]
        assert next(c for c in cells if c.day == date(2024, 5, 14)).expense == 4500


class TestSessionAudio:
    """A record's recording can be played back while the app that made it runs."""

    def test_recording_resolves_in_same_session(self, components, microphone):
        voice_flow, ledger_flow, _ = components
        session = voice_flow.new_session(microphone, target_date=TARGET)
        created = run(_record_and_submit(voice_flow, session))

        audio = ledger_flow.audio_for(ledger_flow.transactions[0])

        assert audio is not None
        assert audio.reference == created.audio_url
        assert audio.content
        assert voice_flow.audio_for(created) is audio

    def test_recording_gone_after_restart(self, storage, analysis_service, microphone):
        voice_flow, _, _ = run(create_app_components(storage=storage, analysis_service=analysis_service))
        session = voice_flow.new_session(microphone, target_date=TARGET)
        created = run(_record_and_submit(voice_flow, session))

        _, ledger_flow, _ = run(create_app_components(storage=storage, analysis_service=analysis_service))

        reloaded = ledger_flow.transactions[0]
        assert reloaded.audio_url == created.audio_url
        assert ledger_flow.audio_for(reloaded) is None

    def test_wipe_forgets_recordings(self, components, microphone):
        voice_flow, ledger_flow, _ = components
        session = voice_flow.new_session(microphone, target_date=TARGET)
        created = run(_record_and_submit(voice_flow, session))

        run(ledger_flow.wipe_all_data())

        assert len(voice_flow.session_audio) == 0
        assert ledger_flow.audio_for(created) is None

    def test_failed_save_keeps_nothing(self, components, storage, microphone):
        voice_flow, _, _ = components
        session = voice_flow.new_session(microphone, target_date=TARGET)
        run(voice_flow.record(session))
        storage.fail_writes = True

        with pytest.raises(StorageError):
            run(voice_flow.submit(session))

        assert len(voice_flow.session_audio) == 0

    @pytest.mark.parametrize("audio_url", [None, "", "https://example.com/a.webm", "artifact:"])
    def test_foreign_references_do_not_resolve(self, components, audio_url):
        _, ledger_flow, _ = components

        assert ledger_flow.audio_for(make_transaction(audio_url=audio_url)) is None


class TestCreateAppComponents:

    def test_empty_store_at_startup(self, analysis_service):
        _, ledger_flow, audit = run(create_app_components(
            storage=InMemoryTransactionStorage(),
            analysis_service=analysis_service,
        ))

        assert ledger_flow.transactions == ()
        assert audit.recent_events()[0].event_type == AuditEventType.STORE_LOADED

    def test_corrupt_store_is_reported(self, analysis_service):
        with pytest.raises(CorruptStoreError):
            run(create_app_components(
                storage=InMemoryTransactionStorage(blob="not json"),
                analysis_service=analysis_service,
            ))

    def test_falls_back_to_memory_when_backend_unavailable(self, monkeypatch, analysis_service):
        def broken_storage():
            raise ValueError("GOOGLE_SHEETS_SPREADSHEET_ID is not set")

        monkeypatch.setattr(orchestrator, "create_storage", broken_storage)

        voice_flow, _, _ = run(create_app_components(analysis_service=analysis_service))

        assert isinstance(voice_flow.store.storage, InMemoryTransactionStorage)

    def test_use_storage_false(self, analysis_service):
        voice_flow, _, _ = run(create_app_components(
            use_storage=False,
            analysis_service=analysis_service,
        ))

        assert voice_flow.store.storage.backend_name == "memory"
