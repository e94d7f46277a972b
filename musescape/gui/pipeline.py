from __future__ import annotations

from typing import Callable, Optional, Sequence, Type

from musescape.config import MuseConfig, create_openrouter_client, load_config
from musescape.errors import ChatFailedError, GenerationFailedError, MuseScapeError, SpeechFailedError
from musescape.services.chat import send_chat_message
from musescape.services.speech import synthesize_narration
from musescape.services.storage import prepare_image_payload
from musescape.services.story import generate_story
from musescape.types import AudioBuffer, ImagePayload, Message, StoryResult


class Pipeline:
    """Thin, UI-oriented wrapper over the backend service functions.

    Responsibilities:
    - Own `cfg` and OpenAI client lifecycle
    - Centralize logging through an injected callback
    """

    def __init__(self, cfg: Optional[MuseConfig] = None, on_log: Optional[Callable[[str], None]] = None, client=None) -> None:
        self.on_log: Callable[[str], None] = on_log or (lambda _msg: None)
        self.on_log("🔧 Initializing Pipeline...")

        self.cfg: MuseConfig = cfg or load_config()
        self.on_log(f"📋 Loaded configuration: story_model={self.cfg.story_model}, chat_model={self.cfg.chat_model}, speech_model={self.cfg.speech_model}")

        if client is not None:
            self.client = client
        else:
            self.client = create_openrouter_client(self.cfg) if self.cfg.openrouter_api_key else None
        if self.client:
            self.on_log("🔗 OpenRouter client initialized successfully")
        else:
            self.on_log("⚠️  OpenRouter client not initialized (no API key)")
        self.on_log("✅ Pipeline initialization complete")

    def reload_config(self, cfg: MuseConfig) -> None:
        self.on_log("🔄 Reloading pipeline configuration...")
        self.cfg = cfg
        old_client = self.client
        self.client = create_openrouter_client(self.cfg) if self.cfg.openrouter_api_key else None
        if self.client and not old_client:
            self.on_log("🔗 OpenRouter client initialized")
        elif not self.client and old_client:
            self.on_log("⚠️  OpenRouter client disabled (no API key)")
        self.on_log("✅ Configuration reload complete")

    def _require_client(self, error_cls: Type[MuseScapeError]):
        if self.client is None:
            raise error_cls("OpenRouter client not initialized (OPENROUTER_API_KEY is missing)")
        return self.client

    # ---------- Helpers ----------
    def prepare_image(self, data: bytes, mime_type: Optional[str]) -> ImagePayload:
        payload = prepare_image_payload(data, mime_type, max_width=self.cfg.max_image_width)
        if payload.data is not data:
            self.on_log(f"🖼️  Downscaled upload to {self.cfg.max_image_width}px JPEG ({len(payload.data)/1024:.1f} KB)")
        return payload

    # ---------- Backend calls ----------
    def generate_story(self, image: ImagePayload) -> StoryResult:
        self.on_log("🧠 Analyzing scene and ghostwriting the opening…")
        client = self._require_client(GenerationFailedError)
        try:
            result = generate_story(client, self.cfg, image, on_log=self.on_log)
        except Exception as e:
            self.on_log(f"❌ Story generation failed: {e}")
            raise
        self.on_log(f"✅ Story ready ({len(result.opening.split())} words)")
        return result

    def send_chat(self, prior_turns: Sequence[Message], text: str) -> str:
        preview = text[:50] + "..." if len(text) > 50 else text
        self.on_log(f"💬 Sending chat message: '{preview}'")
        client = self._require_client(ChatFailedError)
        try:
            return send_chat_message(client, self.cfg, prior_turns, text, on_log=self.on_log)
        except Exception as e:
            self.on_log(f"❌ Chat failed: {e}")
            raise

    def synthesize(self, text: str) -> AudioBuffer:
        client = self._require_client(SpeechFailedError)
        try:
            return synthesize_narration(client, self.cfg, text, on_log=self.on_log)
        except Exception as e:
            self.on_log(f"❌ Narration failed: {e}")
            raise
