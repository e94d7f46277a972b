from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, List, Optional, Protocol

from musescape.errors import PlaybackError
from musescape.services.audio import encode_wav
from musescape.types import AudioBuffer


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"


class AudioSink(Protocol):
    def start(self, buffer: AudioBuffer, on_done: Callable[[], None]) -> None: ...

    def stop(self) -> None: ...


class NullAudioSink:
    """Records what would have been played. Completion is triggered with `finish()`."""

    def __init__(self) -> None:
        self.started: List[AudioBuffer] = []
        self.stop_count = 0
        self._on_done: Optional[Callable[[], None]] = None

    @property
    def active(self) -> bool:
        return self._on_done is not None

    def start(self, buffer: AudioBuffer, on_done: Callable[[], None]) -> None:
        self.started.append(buffer)
        self._on_done = on_done

    def stop(self) -> None:
        self.stop_count += 1
        self._on_done = None

    def finish(self) -> None:
        on_done, self._on_done = self._on_done, None
        if on_done:
            on_done()


class BrowserAudioSink:
    """Hands a WAV clip to the web page and signals completion after its duration.

    The page renders `current_clip` with autoplay; dropping the clip on
    `stop()` removes the audio element on the next render.
    """

    def __init__(self) -> None:
        self.current_clip: Optional[bytes] = None
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def start(self, buffer: AudioBuffer, on_done: Callable[[], None]) -> None:
        clip = encode_wav(buffer)
        timer = threading.Timer(buffer.duration_sec, self._finished, args=(on_done,))
        timer.daemon = True
        with self._lock:
            self._cancel_timer()
            self.current_clip = clip
            self._timer = timer
        timer.start()

    def stop(self) -> None:
        with self._lock:
            self._cancel_timer()
            self.current_clip = None

    def _finished(self, on_done: Callable[[], None]) -> None:
        with self._lock:
            # A newer clip may have replaced this one while we waited
            if self._timer is threading.current_thread():
                self._timer = None
                self.current_clip = None
        on_done()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class PlaybackController:
    """Owns the single narration playback slot.

    Every session gets a new id; only the current session may move the state,
    so late fetch results and stale completion callbacks are ignored.
    """

    def __init__(
        self,
        sink: AudioSink,
        on_log: Optional[Callable[[str], None]] = None,
        on_state: Optional[Callable[[PlaybackState], None]] = None,
    ) -> None:
        self.sink = sink
        self.on_log: Callable[[str], None] = on_log or (lambda _msg: None)
        self.on_state = on_state
        self._state = PlaybackState.IDLE
        self._session_id = 0
        # Re-entrant: a sink may report completion from inside start()
        self._lock = threading.RLock()

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state is PlaybackState.PLAYING

    @property
    def is_loading(self) -> bool:
        return self._state is PlaybackState.LOADING

    def _set_state(self, state: PlaybackState) -> None:
        if state is self._state:
            return
        self._state = state
        if self.on_state:
            self.on_state(state)

    def toggle(self, text: str, fetch_audio: Callable[[str], AudioBuffer]) -> bool:
        """Stop if playing, otherwise start narrating ``text``. Returns True if playback started."""
        with self._lock:
            if self._state is PlaybackState.PLAYING:
                self._stop_locked()
                return False
        return self.play(text, fetch_audio)

    def play(self, text: str, fetch_audio: Callable[[str], AudioBuffer]) -> bool:
        """Start a new session, stopping any current one first.

        Returns True once output has started, False if there was nothing to
        play or the session was cancelled while loading. Fetch or decode
        errors are re-raised after the state returns to idle.
        """
        if not text or not text.strip():
            return False
        with self._lock:
            if self._state is not PlaybackState.IDLE:
                self._stop_locked()
            self._session_id += 1
            session = self._session_id
            self._set_state(PlaybackState.LOADING)
        self.on_log("🔊 Fetching narration audio…")

        try:
            buffer = fetch_audio(text)
        except Exception:
            with self._lock:
                if session == self._session_id:
                    self._set_state(PlaybackState.IDLE)
            raise

        with self._lock:
            if session != self._session_id or self._state is not PlaybackState.LOADING:
                self.on_log("⏹️  Narration cancelled while loading; audio discarded")
                return False
            self._set_state(PlaybackState.PLAYING)
            try:
                self.sink.start(buffer, lambda: self._finished(session))
            except Exception as e:
                self._session_id += 1
                self._set_state(PlaybackState.IDLE)
                raise PlaybackError(f"Audio output failed: {e}") from e
        self.on_log(f"▶️  Narration playing ({buffer.duration_sec:.1f}s)")
        return True

    def stop(self) -> None:
        with self._lock:
            self._stop_locked()

    def _stop_locked(self) -> None:
        if self._state is PlaybackState.IDLE:
            return
        was_playing = self._state is PlaybackState.PLAYING
        # Invalidate the session so a pending fetch or completion is ignored
        self._session_id += 1
        if was_playing:
            self.sink.stop()
        self._set_state(PlaybackState.IDLE)
        self.on_log("⏹️  Narration stopped" if was_playing else "⏹️  Narration cancelled")

    def _finished(self, session: int) -> None:
        with self._lock:
            if session != self._session_id or self._state is not PlaybackState.PLAYING:
                return
            self._session_id += 1
            self._set_state(PlaybackState.IDLE)
        self.on_log("✅ Narration finished")
