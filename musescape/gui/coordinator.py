from __future__ import annotations

import threading
from dataclasses import replace
from typing import Callable, Optional, Tuple

from musescape.gui.pipeline import Pipeline
from musescape.gui.playback import AudioSink, NullAudioSink, PlaybackController, PlaybackState
from musescape.gui.state import AppState, AudioState, ChatState, StoryState
from musescape.types import Message

STORY_ERROR_MESSAGE = "Failed to analyze image. Please try again."


class StudioCoordinator:
    """Owns story, chat and audio state for one session and routes UI events.

    State records are frozen and swapped whole under `_lock`, so a reader
    taking `snapshot()` never sees a half-applied transition.
    """

    def __init__(self, pipeline: Pipeline, sink: Optional[AudioSink] = None, on_log: Optional[Callable[[str], None]] = None) -> None:
        self.pipeline = pipeline
        self.on_log: Callable[[str], None] = on_log or pipeline.on_log
        self.app_state = AppState()
        self._lock = threading.Lock()
        self._chat_turn = threading.Condition(self._lock)

        # Bumped on every upload; late story results from older uploads are dropped
        self._upload_generation = 0
        # Bumped when the transcript is cleared; pending replies from before are dropped
        self._chat_epoch = 0
        self._next_ticket = 0
        self._next_to_append = 0
        self._pending_replies = 0

        self.playback = PlaybackController(sink or NullAudioSink(), on_log=self.on_log, on_state=self._on_playback_state)

    # ---------- Readers ----------
    @property
    def story(self) -> StoryState:
        with self._lock:
            return self.app_state.story

    @property
    def chat(self) -> ChatState:
        with self._lock:
            return self.app_state.chat

    @property
    def audio(self) -> AudioState:
        with self._lock:
            return self.app_state.audio

    def snapshot(self) -> Tuple[StoryState, ChatState, AudioState]:
        with self._lock:
            return self.app_state.story, self.app_state.chat, self.app_state.audio

    # ---------- Story ----------
    def upload_image(self, data: bytes, mime_type: Optional[str] = None) -> StoryState:
        """Start a new scene: reset story and chat together, then generate."""
        try:
            image = self.pipeline.prepare_image(data, mime_type)
        except ValueError as e:
            self.on_log(f"❌ Upload rejected: {e}")
            with self._lock:
                self.app_state.story = replace(self.app_state.story, error=str(e))
                return self.app_state.story

        # Narration of the previous scene must not outlive it
        self.playback.stop()

        with self._lock:
            self._upload_generation += 1
            generation = self._upload_generation
            self.app_state.story = StoryState(image=image, is_generating=True)
            self._reset_chat_locked()
        self.on_log(f"📁 New scene uploaded ({image.mime_type}, {len(image.data)/1024:.1f} KB)")

        try:
            result = self.pipeline.generate_story(image)
        except Exception as e:  # noqa: BLE001
            self.on_log(f"❌ Analysis failed: {e}")
            with self._lock:
                if generation == self._upload_generation:
                    self.app_state.story = replace(self.app_state.story, is_generating=False, error=STORY_ERROR_MESSAGE)
                return self.app_state.story

        with self._lock:
            if generation == self._upload_generation:
                self.app_state.story = replace(
                    self.app_state.story,
                    is_generating=False,
                    analysis=result.analysis,
                    opening=result.opening,
                    error=None,
                )
            else:
                self.on_log("⏭️  Discarded story for a replaced scene")
            return self.app_state.story

    # ---------- Chat ----------
    def _reset_chat_locked(self) -> None:
        self.app_state.chat = ChatState()
        self._chat_epoch += 1
        self._next_ticket = 0
        self._next_to_append = 0
        self._pending_replies = 0
        self._chat_turn.notify_all()

    def send_chat_message(self, text: str) -> Optional[str]:
        """Append the user turn at once, then the reply when it arrives.

        Replies are appended in the order their messages were sent. On failure
        the user turn stays and no reply is added. Returns the reply text or None.
        """
        text = (text or "").strip()
        if not text:
            return None

        with self._lock:
            prior = self.app_state.chat.messages
            self.app_state.chat = ChatState(messages=prior + (Message(role="user", text=text),), is_typing=True)
            epoch = self._chat_epoch
            ticket = self._next_ticket
            self._next_ticket += 1
            self._pending_replies += 1

        reply: Optional[str]
        try:
            reply = self.pipeline.send_chat(prior, text)
        except Exception as e:  # noqa: BLE001
            self.on_log(f"❌ Chat reply failed: {e}")
            reply = None

        with self._chat_turn:
            while epoch == self._chat_epoch and ticket != self._next_to_append:
                self._chat_turn.wait()
            if epoch != self._chat_epoch:
                # Transcript was cleared by a new upload
                return None
            messages = self.app_state.chat.messages
            if reply is not None:
                messages = messages + (Message(role="model", text=reply),)
            self._next_to_append += 1
            self._pending_replies -= 1
            self.app_state.chat = ChatState(messages=messages, is_typing=self._pending_replies > 0)
            self._chat_turn.notify_all()
        return reply

    # ---------- Narration ----------
    def _on_playback_state(self, state: PlaybackState) -> None:
        with self._lock:
            self.app_state.audio = AudioState(
                is_playing=state is PlaybackState.PLAYING,
                is_loading=state is PlaybackState.LOADING,
            )

    def toggle_narration(self) -> bool:
        """Read the opening paragraph aloud, or stop it if it is playing."""
        opening = self.story.opening
        try:
            return self.playback.toggle(opening, self.pipeline.synthesize)
        except Exception as e:  # noqa: BLE001
            self.on_log(f"❌ Narration unavailable: {e}")
            return False

    def play_narration(self) -> bool:
        """Start reading the opening paragraph aloud, replacing any current narration."""
        opening = self.story.opening
        try:
            return self.playback.play(opening, self.pipeline.synthesize)
        except Exception as e:  # noqa: BLE001
            self.on_log(f"❌ Narration unavailable: {e}")
            return False

    def stop_narration(self) -> None:
        self.playback.stop()
