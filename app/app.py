"""
UI layer
Purpose: Streamlit-only glue. Renders the views, collects user inputs, and delegates
all work to the controllers. Keeps UI concerns (layout/state widgets) separate from
business logic so logic can be unit tested without Streamlit.
"""

import base64
import hashlib
from datetime import datetime
from typing import Optional

import streamlit as st
from audio_recorder_streamlit import audio_recorder

from companion.config import build_provider, configure_logging, load_config
from companion.controller import CompanionChatController
from companion.controller_quiz import AssessmentQuizController
from companion.errors import ConfigurationError, PermissionDeniedError
from companion.models import Attachment, Message, Persona, Role
from companion.persistence.session_store import CHAT_PREFIX, NamespacedStore, open_store
from companion.prompts import DefaultPromptFactory
from companion.services.audio_devices import MicrophoneSource, SpeakerSink
from companion.services.documents import DocumentArchive, DocumentExtractor
from companion.services.live_audio import LiveAudioBridge, LiveTalkRunner
from companion.services.perception import mood_category
from companion.services.security import sanitize_markup
from companion.session import SessionManager


# ---------------------------
# Page config
# ---------------------------
st.set_page_config(
    page_title="Mindful Companion",
    page_icon="🌿",
    layout="wide",
    initial_sidebar_state="expanded",
)

# ---------------------------
# UI constants
# ---------------------------
VIEWS = ["Home", "Digitizer", "Chat", "Quiz", "History"]
PERSONAS = [p.value for p in Persona]
MOOD_ICONS = {"happy": "😊", "low": "😔", "neutral": "😐"}

# ---------------------------
# Session state init
# ---------------------------
st_session = st.session_state
st_session.setdefault("services", None)
st_session.setdefault("chat_controller", None)
st_session.setdefault("quiz_controller", None)
st_session.setdefault("view", VIEWS[0])
st_session.setdefault("persona", PERSONAS[0])
st_session.setdefault("use_camera", False)
st_session.setdefault("voice_mode", False)
st_session.setdefault("last_voice_sig", None)
st_session.setdefault("upload_key", 0)
st_session.setdefault("digitized", None)
st_session.setdefault("live_runner", None)


# ---------------------------
# Helpers
# ---------------------------
def init_services():
    """Build config, provider, store and controllers once per browser session."""
    if st_session.services is not None:
        return st_session.services
    try:
        config = load_config()
    except ConfigurationError as e:
        st.error(f"Configuration error: {e}")
        st.stop()
    configure_logging(config.log_level)

    provider = build_provider(config)
    store = open_store(config.store_path)
    prompts = DefaultPromptFactory()
    archive = DocumentArchive(store)
    sessions = SessionManager(
        NamespacedStore(store, CHAT_PREFIX), prompts.persona_instructions()
    )

    st_session.chat_controller = CompanionChatController(
        provider,
        sessions,
        settings=config.chat_settings(),
        vision_settings=config.vision_settings(),
        perception_settings=config.perception_settings(),
        archive=archive,
        prompts=prompts,
    )
    st_session.quiz_controller = AssessmentQuizController(
        provider, config.quiz_settings(), prompts=prompts
    )
    st_session.services = {
        "config": config,
        "provider": provider,
        "prompts": prompts,
        "extractor": DocumentExtractor(
            provider, config.vision_settings(), prompts=prompts
        ),
    }
    return st_session.services


def get_chat_controller() -> CompanionChatController:
    return st_session.chat_controller


def get_quiz_controller() -> AssessmentQuizController:
    return st_session.quiz_controller


def render_markup(markup: str) -> None:
    """Model-authored text is untrusted HTML; sanitize before rendering."""
    st.markdown(sanitize_markup(markup), unsafe_allow_html=True)


def to_attachment(uploaded) -> Optional[Attachment]:
    """Convert a Streamlit UploadedFile into a transient Attachment."""
    if uploaded is None:
        return None
    return Attachment.from_bytes(
        uploaded.getvalue(),
        uploaded.type or "application/octet-stream",
        name=uploaded.name,
    )


def format_timestamp(ms: int) -> str:
    return f"{datetime.fromtimestamp(ms / 1000):%Y-%m-%d %H:%M}"


def render_message(msg: Message) -> None:
    role = "assistant" if msg.role == Role.MODEL else "user"
    with st.chat_message(role):
        if msg.pending:
            st.markdown("…")
            return
        if msg.image and msg.image.startswith("data:image/"):
            st.image(msg.image, width=240)
        if msg.role == Role.MODEL:
            render_markup(msg.content)
        else:
            st.markdown(msg.content)
        if msg.mood:
            icon = MOOD_ICONS.get(mood_category(msg.mood), "")
            st.caption(f"{icon} Mood: {msg.mood}")


def voice_to_text() -> Optional[str]:
    """Record a voice note and return its transcription, once per recording."""
    st.markdown("**Voice input:** press, speak, and pause to finish.")
    wav_bytes = audio_recorder(
        pause_threshold=2,
        sample_rate=16_000,
        text="Press to record",
        icon_size="2x",
    )
    if not wav_bytes:
        return None
    sig = hashlib.sha1(wav_bytes).hexdigest()
    if sig == st_session.last_voice_sig:
        return None
    st_session.last_voice_sig = sig
    with st.spinner("Transcribing…"):
        text = get_chat_controller().voice_to_text(
            base64.b64encode(wav_bytes).decode("ascii"), "audio/wav"
        )
    if text is None:
        st.toast("Could not transcribe that recording. Please try again.", icon="⚠️")
    return text


def make_live_bridge() -> LiveAudioBridge:
    services = init_services()
    return LiveAudioBridge(
        services["provider"],
        MicrophoneSource(),
        SpeakerSink(),
        settings=services["config"].live_settings(),
        instruction=services["prompts"].persona_instruction(st_session.persona),
    )


def toggle_live_talk() -> None:
    runner: Optional[LiveTalkRunner] = st_session.live_runner
    if runner is not None and runner.is_running:
        runner.stop()
        st.toast("Live talk ended.")
        return
    if runner is None:
        runner = LiveTalkRunner(make_live_bridge)
    try:
        runner.start()
    except PermissionDeniedError as e:
        st.error(str(e))
        return
    st_session.live_runner = runner
    st.toast("Live talk started. Speak freely.")


def on_persona_change():
    runner: Optional[LiveTalkRunner] = st_session.live_runner
    if runner is not None and runner.is_running:
        runner.stop()
    get_chat_controller().open(st_session.persona)


# ---------------------------
# Bootstrapping
# ---------------------------
init_services()
if not get_chat_controller().is_ready():
    get_chat_controller().open(st_session.persona)

# ---------------------------
# SIDEBAR: navigation & options
# ---------------------------
with st.sidebar:
    st.markdown("# Mindful Companion")
    st_session.view = st.radio("Go to", VIEWS, index=VIEWS.index(st_session.view))
    st.divider()
    if st_session.view == "Chat":
        st.selectbox(
            "Talk with",
            PERSONAS,
            key="persona",
            on_change=on_persona_change,
        )
        st_session.use_camera = st.toggle(
            "📷 Share my mood (camera)", value=st_session.use_camera
        )
        st_session.voice_mode = st.toggle(
            "🎙️ Voice notes", value=st_session.voice_mode
        )
    st.caption(f"Provider: **{init_services()['config'].provider}**")


# ---------------------------
# Views
# ---------------------------
if st_session.view == "Home":
    st.subheader("Welcome")
    st.markdown(
        """
        A private space to talk things through and keep track of your health.

        - **Chat** with a Friend, Therapist, Doctor or Counselor. Attach a photo of a
          report or prescription and the companion reads it before answering.
        - **Digitizer** turns a photographed prescription into clear, structured text.
        - **Quiz** walks you through a short self-assessment and ends with a summary.
        - **History** lets you revisit or clear saved conversations and analyses.

        This app is not a substitute for professional medical advice.
        """
    )

elif st_session.view == "Digitizer":
    st.subheader("Prescription digitizer")
    uploaded = st.file_uploader(
        "Upload a prescription image or PDF",
        type=["png", "jpg", "jpeg", "webp", "pdf"],
        key=f"digitizer_upload_{st_session.upload_key}",
    )
    col1, col2 = st.columns([1, 4])
    digitize_clicked = col1.button("Digitize", type="primary")
    if col2.button("Clear"):
        st_session.digitized = None
        st_session.upload_key += 1
        st.rerun()

    if digitize_clicked:
        extractor: DocumentExtractor = init_services()["extractor"]
        with st.spinner("Reading the prescription…"):
            st_session.digitized = extractor.digitize_prescription(
                to_attachment(uploaded)
            )

    result = st_session.digitized
    if result is not None:
        if result.ok:
            render_markup(result.text)
        else:
            st.warning(result.error)

elif st_session.view == "Chat":
    controller = get_chat_controller()
    st.subheader(f"Chat with your {controller.persona}")

    live_runner: Optional[LiveTalkRunner] = st_session.live_runner
    live_on = live_runner is not None and live_runner.is_running
    if st.button("⏹️ End live talk" if live_on else "🗣️ Start live talk"):
        toggle_live_talk()
        st.rerun()
    if live_runner is not None and live_runner.bridge and live_runner.bridge.error:
        st.toast("Live talk was interrupted.", icon="⚠️")

    transcript = st.container(height=500, border=True)
    with transcript:
        for msg in controller.history():
            render_message(msg)

    frame = st.camera_input("Mood snapshot") if st_session.use_camera else None
    uploaded = st.file_uploader(
        "Attach a report or photo",
        type=["png", "jpg", "jpeg", "webp", "pdf"],
        key=f"chat_upload_{st_session.upload_key}",
    )

    user_text = None
    if st_session.voice_mode:
        user_text = voice_to_text()
    else:
        user_text = st.chat_input("Share what's on your mind…")

    if user_text is not None or (uploaded is not None and st.button("Send file")):
        mood_frame = (
            base64.b64encode(frame.getvalue()).decode("ascii") if frame else None
        )
        try:
            with st.spinner("Thinking…"):
                controller.send(
                    user_text or "",
                    attachment=to_attachment(uploaded),
                    mood_frame=mood_frame,
                )
            st_session.upload_key += 1
        except ValueError as e:
            st.toast(str(e), icon="⚠️")
        st.rerun()

elif st_session.view == "Quiz":
    quiz = get_quiz_controller()
    st.subheader("Self-assessment")
    st.caption("A short screener. Answer honestly; it is only for you.")

    if st.button("Start over"):
        quiz.reset()
        st.rerun()

    for msg in quiz.messages:
        with st.chat_message("assistant" if msg.role == Role.MODEL else "user"):
            if msg.role == Role.MODEL:
                render_markup(msg.content)
            else:
                st.markdown(msg.content)

    if quiz.finished:
        st.success("Assessment complete")
        render_markup(quiz.analysis)
    else:
        answer = None
        options = quiz.quick_replies()
        if options:
            cols = st.columns(len(options))
            for i, (col, option) in enumerate(zip(cols, options)):
                if col.button(option, key=f"quiz_option_{len(quiz.messages)}_{i}"):
                    answer = option
        placeholder = (
            "Describe what has been bothering you…"
            if not quiz.messages
            else "Type your answer…"
        )
        typed = st.chat_input(placeholder)
        answer = answer or typed
        if answer is not None:
            try:
                with st.spinner("Thinking…"):
                    quiz.answer(answer)
            except ValueError as e:
                st.toast(str(e), icon="⚠️")
            st.rerun()

elif st_session.view == "History":
    controller = get_chat_controller()
    st.subheader("Saved conversations")
    histories = controller.saved_histories()
    if not histories:
        st.info("No saved conversations yet.")
    for persona, messages in histories.items():
        with st.expander(f"{persona} · {len(messages)} messages"):
            for msg in messages:
                render_message(msg)
            if st.button(f"Clear {persona} history", key=f"clear_{persona}"):
                controller.clear(persona)
                st.toast(f"{persona} history cleared.")
                st.rerun()

    st.divider()
    st.subheader("Document analyses")
    records = controller.documents()
    if not records:
        st.info("No analyzed documents yet.")
    for record in reversed(records):
        with st.expander(f"{record.name} · {format_timestamp(record.timestamp)}"):
            render_markup(record.content)
