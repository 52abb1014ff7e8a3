"""
Streamlit Frontend for VoiceMoney

Four views:
1. 대시보드 - totals, category breakdown, impulse score by weekday
2. 음성 기록 - month calendar; click a day, record a memo, submit
3. 지출 목록 - every record, newest first, with inline edit
4. 설정     - connection status, recent activity, full data wipe

DESIGN PRINCIPLES:
1. One action at a time (no overlapping recording and submission)
2. Errors are shown where the user acted, in plain Korean
3. A failed analysis never loses the recording
"""

import asyncio
from datetime import date, datetime

import streamlit as st

from voicemoney.audit import configure_logging
from voicemoney.config import get_settings, validate_all_settings
from voicemoney.insights import (
    WEEKDAY_LABELS,
    impulse_band,
    recording_datetime_for,
    transactions_on,
)
from voicemoney.models.transaction import (
    CATEGORY_DESCRIPTIONS,
    IMPULSE_SCORE_MAX,
    IMPULSE_SCORE_MIN,
    Category,
    TransactionType,
)
from voicemoney.orchestrator import (
    LedgerFlow,
    VoiceEntryFlow,
    create_app_components,
    create_storage,
)
from voicemoney.services.analysis import AnalysisError, ConfigurationError
from voicemoney.services.capture import (
    CaptureError,
    CaptureState,
    PermissionDenied,
    RecordedClipMicrophone,
)
from voicemoney.services.storage import CorruptStoreError, NotFoundError, StorageError


st.set_page_config(
    page_title="VoiceMoney",
    page_icon="🎙️",
    layout="wide",
    initial_sidebar_state="expanded",
)

IMPULSE_BAND_ICONS = {"low": "🟢", "medium": "🟡", "high": "🔴"}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    configure_logging(get_settings().app.log_level)
    return run_async(create_app_components(use_storage=True))


def format_won(amount: int) -> str:
    return f"{amount:,}원"


def format_korean_date(value: date) -> str:
    weekday = WEEKDAY_LABELS[(value.weekday() + 1) % 7]
    return f"{value.year}년 {value.month}월 {value.day}일 {weekday}요일"


def main():
    """Main application entry point."""
    try:
        voice_flow, ledger_flow, audit_logger = get_components()
    except CorruptStoreError as e:
        render_corrupt_store_page(e)
        return

    st.sidebar.title("✨ VoiceMoney")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "메뉴",
        ["📊 대시보드", "🎙️ 음성 기록", "📋 지출 목록", "⚙️ 설정"],
        index=0,
        key="page",
    )

    st.sidebar.markdown("---")
    st.sidebar.caption("AI Powered Expense Tracker")

    if page == "📊 대시보드":
        render_dashboard_page(ledger_flow)
    elif page == "🎙️ 음성 기록":
        if st.session_state.get("recording_date"):
            render_record_page(voice_flow)
        else:
            render_calendar_page(ledger_flow)
    elif page == "📋 지출 목록":
        render_list_page(ledger_flow)
    elif page == "⚙️ 설정":
        render_settings_page(ledger_flow, audit_logger)


def render_corrupt_store_page(error: CorruptStoreError):
    """Shown when the saved ledger can't be read."""
    st.title("⚠️ 저장된 데이터를 읽을 수 없습니다")
    st.error(str(error))
    st.markdown("데이터 파일이 손상되었습니다. 초기화하면 모든 기록이 삭제됩니다.")
    if st.checkbox("모든 데이터가 삭제되는 것을 이해했습니다"):
        if st.button("데이터 초기화", type="primary"):
            run_async(create_storage().wipe())
            get_components.clear()
            st.rerun()


def render_dashboard_page(ledger_flow: LedgerFlow):
    st.title("📊 대시보드")
    summary = ledger_flow.dashboard()

    col1, col2, col3 = st.columns(3)
    col1.metric("총 지출", format_won(summary.total_expense))
    col2.metric("총 수입", format_won(summary.total_income))
    band = impulse_band(summary.average_impulse_score)
    col3.metric(
        "평균 충동 지수",
        f"{IMPULSE_BAND_ICONS[band]} {summary.average_impulse_score:.1f} / 10",
    )

    if summary.transaction_count == 0:
        st.info("아직 기록이 없습니다. '음성 기록'에서 첫 지출을 말해보세요.")
        return

    left, right = st.columns(2)
    with left:
        st.subheader("카테고리별 지출")
        if summary.category_breakdown:
            st.bar_chart(
                {
                    "카테고리": [item.category.value for item in summary.category_breakdown],
                    "금액": [item.amount for item in summary.category_breakdown],
                },
                x="카테고리",
                y="금액",
            )
            for item in summary.category_breakdown:
                st.markdown(
                    f"<span style='color:{item.color}'>●</span> {item.category.value} "
                    f": {format_won(item.amount)}",
                    unsafe_allow_html=True,
                )
        else:
            st.caption("지출 기록이 없습니다.")

    with right:
        st.subheader("요일별 충동 지수")
        st.bar_chart(
            {
                "요일": [item.label for item in summary.impulse_by_weekday],
                "점수": [item.average_score for item in summary.impulse_by_weekday],
            },
            x="요일",
            y="점수",
        )


def render_calendar_page(ledger_flow: LedgerFlow):
    st.title("🎙️ 음성 기록")
    today = date.today()
    st.markdown(f"### {today.year}년 {today.month}월")
    st.caption("날짜를 눌러 그날의 지출을 말해보세요.")

    if st.session_state.get("last_saved"):
        st.success("새 기록이 저장되었습니다. '지출 목록'에서 내용을 확인해주세요.")

    header = st.columns(7)
    for col, label in zip(header, WEEKDAY_LABELS):
        col.markdown(f"**{label}**")

    for week in ledger_flow.month(today.year, today.month, today=today):
        cols = st.columns(7)
        for col, cell in zip(cols, week):
            if cell is None:
                col.write("")
                continue
            label = f"{'📍' if cell.is_today else ''}{cell.day.day}"
            if col.button(label, key=f"day-{cell.day.isoformat()}", use_container_width=True):
                st.session_state.recording_date = recording_datetime_for(cell.day)
                st.session_state.capture_session = None
                st.rerun()
            if cell.expense:
                col.caption(f"-{cell.expense:,}")
            if cell.income:
                col.caption(f"+{cell.income:,}")


def _clear_recording_state():
    st.session_state.capture_session = None
    st.session_state.audio_widget = st.session_state.get("audio_widget", 0) + 1


def render_record_page(voice_flow: VoiceEntryFlow):
    target: datetime = st.session_state.recording_date
    settings = get_settings().app

    if st.button("← 달력으로"):
        st.session_state.recording_date = None
        _clear_recording_state()
        st.rerun()

    st.title("🎙️ 음성 지출 기록")
    st.markdown(f"📅 **{format_korean_date(target.date())}**")
    st.markdown("이 날 무엇을 소비하셨나요? 편하게 말씀해주세요.")

    existing = transactions_on(voice_flow.store.transactions, target.date())
    if existing:
        with st.expander(f"이 날의 기록 {len(existing)}건"):
            for transaction in existing:
                st.markdown(
                    f"- {transaction.type.value} {format_won(transaction.amount)} · "
                    f"{transaction.category.value} · {transaction.merchant or '-'}"
                )

    session = st.session_state.get("capture_session")

    if session is None or session.state != CaptureState.STOPPED:
        clip = st.audio_input(
            "버튼을 눌러 녹음을 시작하세요",
            key=f"audio-{st.session_state.get('audio_widget', 0)}",
        )
        if clip is None:
            return
        session = voice_flow.new_session(
            RecordedClipMicrophone.from_upload(clip, settings.default_audio_mime_type),
            target_date=target,
        )
        try:
            run_async(voice_flow.record(session))
        except PermissionDenied:
            st.error("마이크 접근 권한이 필요합니다.")
            return
        except CaptureError as e:
            st.error(f"녹음을 처리하지 못했습니다: {e}")
            return
        st.session_state.capture_session = session
    else:
        st.audio(session.artifact.content, format=session.artifact.mime_type)

    st.caption("녹음 완료! 내용을 분석할까요?")
    col1, col2 = st.columns(2)

    with col1:
        if st.button("↺ 다시 녹음"):
            session.reset()
            _clear_recording_state()
            st.rerun()

    with col2:
        if st.button("📨 기록하기", type="primary"):
            with st.spinner("분석 중..."):
                try:
                    transaction = run_async(voice_flow.submit(session))
                except ConfigurationError:
                    st.error("Gemini API 키가 설정되지 않았습니다. 설정 페이지를 확인하세요.")
                    return
                except AnalysisError:
                    st.error("분석에 실패했습니다. 다시 시도해주세요.")
                    return
                except StorageError as e:
                    st.error(f"저장에 실패했습니다: {e}")
                    return

            _clear_recording_state()
            st.session_state.recording_date = None
            st.session_state.last_saved = transaction.id
            st.rerun()


def render_list_page(ledger_flow: LedgerFlow):
    st.title("📋 지출/수입 내역")

    transactions = ledger_flow.transactions
    if not transactions:
        st.info("기록된 내역이 없습니다.")
        return

    last_saved = st.session_state.pop("last_saved", None)
    if last_saved:
        st.success("새 기록이 저장되었습니다. 내용을 확인해주세요.")

    categories = list(Category)
    types = list(TransactionType)

    for transaction in transactions:
        when = transaction.date.strftime("%Y-%m-%d %H:%M")
        badge = " ✏️ 수정됨" if transaction.is_modified else ""
        title = (
            f"{when} · {transaction.type.value} {format_won(transaction.amount)} · "
            f"{transaction.category.value}{badge}"
        )
        with st.expander(title, expanded=transaction.id == last_saved):
            st.markdown(f"**가맹점:** {transaction.merchant or '-'}  |  **결제수단:** {transaction.method or '-'}")
            st.markdown(f"**이유:** {transaction.reason}")
            st.markdown(f"**감정:** {transaction.emotion or '-'}  |  "
                        f"**충동 지수:** {IMPULSE_BAND_ICONS[impulse_band(transaction.impulse_score)]} "
                        f"{transaction.impulse_score}")
            if transaction.diary:
                st.markdown(f"**일기:** {transaction.diary}")
            st.caption(f"🗣️ {transaction.transcript}")
            audio = ledger_flow.audio_for(transaction)
            if audio is not None:
                st.caption("🎧 원본 듣기")
                st.audio(audio.content, format=audio.mime_type)

            with st.form(key=f"edit-{transaction.id}"):
                col1, col2, col3 = st.columns(3)
                new_type = col1.selectbox(
                    "구분",
                    options=types,
                    index=types.index(transaction.type),
                    format_func=lambda t: t.value,
                )
                new_amount = col2.number_input(
                    "금액",
                    min_value=0,
                    value=transaction.amount,
                    step=100,
                )
                new_category = col3.selectbox(
                    "카테고리",
                    options=categories,
                    index=categories.index(transaction.category),
                    format_func=lambda c: f"{c.value} ({', '.join(CATEGORY_DESCRIPTIONS[c][:3])})",
                )
                col4, col5 = st.columns(2)
                new_subcategory = col4.text_input("세부 항목", value=transaction.subcategory or "")
                new_merchant = col5.text_input("가맹점", value=transaction.merchant)
                new_impulse = st.slider(
                    "충동 지수",
                    min_value=IMPULSE_SCORE_MIN,
                    max_value=IMPULSE_SCORE_MAX,
                    value=transaction.impulse_score,
                )

                if st.form_submit_button("저장"):
                    changes = {
                        "type": new_type,
                        "amount": int(new_amount),
                        "category": new_category,
                        "subcategory": new_subcategory.strip() or None,
                        "merchant": new_merchant,
                        "impulse_score": new_impulse,
                    }
                    try:
                        run_async(ledger_flow.edit_transaction(transaction.id, **changes))
                    except NotFoundError:
                        st.error("이미 삭제된 기록입니다.")
                    except ValueError as e:
                        st.error(f"입력값을 확인해주세요: {e}")
                    except StorageError as e:
                        st.error(f"저장에 실패했습니다: {e}")
                    else:
                        st.rerun()


def render_settings_page(ledger_flow: LedgerFlow, audit_logger):
    st.title("⚙️ 설정")

    st.markdown("### 연결 상태")
    status = validate_all_settings()
    services = [
        ("Gemini (AI 분석)", "gemini"),
        ("저장소", "storage"),
        ("Google Sheets", "google_sheets"),
    ]
    for name, key in services:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {name}")
        else:
            st.error(f"❌ {name} - {status.get(f'{key}_error', '설정되지 않음')}")

    st.markdown("---")
    st.markdown("### 최근 활동")
    events = audit_logger.recent_events(limit=20)
    if events:
        for event in events:
            st.caption(f"{event.timestamp:%H:%M:%S} · {event.description}")
    else:
        st.caption("활동 기록이 없습니다.")

    st.markdown("---")
    st.markdown("### 데이터 초기화")
    st.caption(f"현재 {len(ledger_flow.transactions)}건이 저장되어 있습니다.")
    confirm = st.checkbox("모든 데이터가 영구적으로 삭제되는 것을 이해했습니다")
    if st.button("모든 데이터 삭제", disabled=not confirm):
        try:
            removed = run_async(ledger_flow.wipe_all_data())
        except StorageError as e:
            st.error(f"삭제에 실패했습니다: {e}")
        else:
            st.success(f"{removed}건의 기록을 삭제했습니다.")


if __name__ == "__main__":
    main()
