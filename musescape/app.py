from __future__ import annotations

import os
import sys
from datetime import datetime
from typing import List

import streamlit as st
from dotenv import load_dotenv

# Ensure project root is on sys.path
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Load environment
load_dotenv()

from musescape.config import load_config  # noqa: E402
from musescape.gui.coordinator import StudioCoordinator  # noqa: E402
from musescape.gui.markup import styled_text  # noqa: E402
from musescape.gui.pipeline import Pipeline  # noqa: E402
from musescape.gui.playback import BrowserAudioSink  # noqa: E402
from musescape.services import connectivity_probe, openrouter_models_probe  # noqa: E402


IMAGE_TYPES = ["png", "jpg", "jpeg", "webp", "gif", "heic", "heif"]


# --------------------------
# Page configuration & Styles
# --------------------------
st.set_page_config(
    page_title="MuseScape",
    layout="wide",
    page_icon="🪶",
    initial_sidebar_state="expanded",
)

st.markdown(
    """
<style>
  .main-header { background: linear-gradient(135deg, #4f46e5 0%, #0f172a 100%); color: white; padding: 1.25rem 1rem; border-radius: 10px; margin-bottom: 1.25rem; text-align: center; }
  .main-header h1 { margin: 0; font-size: 2.25rem; font-weight: 700; }
  .status-indicator { padding: 0.35rem 0.75rem; border-radius: 16px; font-size: 0.85rem; font-weight: 600; display: inline-block; }
  .status-ok { background-color: #d4edda; color: #155724; border: 1px solid #c3e6cb; }
  .status-fail { background-color: #f8d7da; color: #721c24; border: 1px solid #f5c6cb; }
  .log-container { background: #2d3748; color: #e2e8f0; border-radius: 8px; padding: 0.75rem; font-family: 'Monaco','Menlo','Ubuntu Mono',monospace; font-size: 0.75rem; max-height: 320px; overflow-y: auto; }
  .opening { font-family: Georgia, 'Times New Roman', serif; font-size: 1.2rem; line-height: 2; }
  .analysis { font-style: italic; color: #94a3b8; }
</style>
""",
    unsafe_allow_html=True,
)


# --------------------------
# Session State & Utilities
# --------------------------
def _log(message: str) -> None:
    ts = datetime.now().strftime("%H:%M:%S")
    entry = f"[{ts}] {message}"
    st.session_state.logs.append(entry)


def _init_session() -> None:
    if "initialized" not in st.session_state:
        st.session_state.initialized = True
        st.session_state.cfg = load_config()
        st.session_state.logs = []  # type: List[str]
        # Bound to this session's log list; callbacks may fire off the script thread
        logs = st.session_state.logs

        def on_log(message: str) -> None:
            logs.append(f"[{datetime.now().strftime('%H:%M:%S')}] {message}")

        st.session_state.sink = BrowserAudioSink()
        pipeline = Pipeline(st.session_state.cfg, on_log=on_log)
        st.session_state.coordinator = StudioCoordinator(pipeline, sink=st.session_state.sink, on_log=on_log)
        st.session_state.last_upload_id = None


def _header() -> None:
    st.markdown(
        """
        <div class="main-header">
            <h1>🪶 MuseScape</h1>
            <p>AI Creative Writing Studio: upload a scene, get a story opening, build the world</p>
        </div>
        """,
        unsafe_allow_html=True,
    )


# --------------------------
# Sidebar: Connection & Files
# --------------------------
def _sidebar() -> None:
    st.subheader("🔗 Connection")
    cfg = st.session_state.cfg
    if not cfg.openrouter_api_key:
        st.error("OPENROUTER_API_KEY is missing. Add it to your environment or .env.")
    else:
        ok, msg = connectivity_probe(cfg.base_url)
        klass = "status-ok" if ok else "status-fail"
        label = "✅ Connected" if ok else "❌ Disconnected"
        st.markdown(f'<div class="status-indicator {klass}">{label}</div>', unsafe_allow_html=True)
        if not ok:
            st.caption(f"Error: {msg}")
        if st.button("🔑 Check API key", use_container_width=True):
            ok, msg = openrouter_models_probe(cfg.openrouter_api_key, cfg.base_url)
            _log(f"{'✅' if ok else '❌'} Models probe: {msg}")

    st.divider()

    st.subheader("📁 Scene")
    image_file = st.file_uploader(
        "Upload an image to start",
        type=IMAGE_TYPES,
        key="image_uploader",
        help="A photo or artwork. MuseScape analyzes its mood and ghostwrites an opening paragraph.",
    )
    if image_file is not None:
        upload_id = getattr(image_file, "file_id", None) or (image_file.name, image_file.size)
        if upload_id != st.session_state.last_upload_id:
            st.session_state.last_upload_id = upload_id
            _ingest_image(image_file.getvalue(), image_file.type)

    st.divider()

    if st.button("♻️ New Session", use_container_width=True, help="Clear the scene, story and chat."):
        _reset_app()


# --------------------------
# Main Content
# --------------------------
def _main_content() -> None:
    coordinator: StudioCoordinator = st.session_state.coordinator
    story, chat, _audio = coordinator.snapshot()

    col_img, col_text = st.columns([1, 1])
    with col_img:
        if story.image is None:
            st.info("🖼️ Upload an image to start.")
        else:
            st.image(story.image.data, caption="Story reference", use_container_width=True)
        if story.analysis:
            st.markdown("**Analysis of Scene**")
            st.markdown(styled_text("p", "analysis", story.analysis, quoted=True), unsafe_allow_html=True)

    with col_text:
        st.subheader("📜 Opening Passage")
        if story.opening:
            _narration_controls()
            st.markdown(styled_text("div", "opening", story.opening), unsafe_allow_html=True)
        elif story.is_generating:
            st.info("🔄 Dreaming up the story…")
        else:
            st.caption("Your story will appear here once an image is uploaded.")
        if story.error:
            st.error(f"❌ {story.error}")

    st.divider()
    _chat_panel(chat.messages, chat.is_typing)


def _narration_controls() -> None:
    coordinator: StudioCoordinator = st.session_state.coordinator
    audio = coordinator.audio
    # One key per action: a stale "Stop" click after playback ended must not restart it
    if audio.is_playing:
        if st.button("⏹️ Stop Narration", key="narration_stop"):
            coordinator.stop_narration()
            st.rerun()
    elif st.button("🔊 Read Aloud", key="narration_play", disabled=audio.is_loading):
        with st.spinner("Preparing narration…"):
            coordinator.play_narration()
        st.rerun()
    clip = st.session_state.sink.current_clip
    if audio.is_playing and clip:
        st.audio(clip, format="audio/wav", autoplay=True)


def _chat_panel(messages, is_typing: bool) -> None:
    st.subheader("💬 World Builder Chat")
    if not messages:
        st.caption('"What lies beyond those mountains?" Ask MuseScape about the scene to expand the story.')
    for msg in messages:
        with st.chat_message("user" if msg.role == "user" else "assistant"):
            st.markdown(msg.text)

    text = st.chat_input("Ask about the world...", disabled=is_typing)
    if text and text.strip() and not is_typing:
        with st.chat_message("user"):
            st.markdown(text.strip())
        with st.spinner("MuseScape is thinking..."):
            st.session_state.coordinator.send_chat_message(text)
        st.rerun()


# --------------------------
# Right Panel: Logs
# --------------------------
def _right_panel() -> None:
    st.subheader("📋 Activity Log")
    logs: List[str] = st.session_state.get("logs", [])
    if logs:
        st.markdown("<div class=\"log-container\">" + "<br>".join(logs[-40:]) + "</div>", unsafe_allow_html=True)
        if st.button("🗑️ Clear Logs", use_container_width=True):
            # Cleared in place so the pipeline's callback keeps the same list
            del st.session_state.logs[:]
    else:
        st.caption("No activity yet")


# --------------------------
# Actions
# --------------------------
def _ingest_image(data: bytes, mime_type: str) -> None:
    coordinator: StudioCoordinator = st.session_state.coordinator
    with st.spinner("Dreaming up the story… analyzing the mood and ghostwriting your opening paragraph."):
        story = coordinator.upload_image(data, mime_type)
    if not story.error:
        st.success("🎉 Your opening passage is ready.")


def _reset_app() -> None:
    coordinator = st.session_state.get("coordinator")
    if coordinator is not None:
        coordinator.stop_narration()
    for key in list(st.session_state.keys()):
        del st.session_state[key]
    _init_session()
    st.success("Session reset.")


# --------------------------
# Entry Point
# --------------------------
def main() -> None:
    _init_session()
    _header()

    col1, col2, col3 = st.columns([0.9, 2.8, 0.8])
    with col1:
        _sidebar()
    with col2:
        _main_content()
    with col3:
        _right_panel()


if __name__ == "__main__":
    main()
